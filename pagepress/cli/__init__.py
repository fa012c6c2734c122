"""Command-line entry points for pagepress."""

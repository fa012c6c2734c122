"""Utility modules shared across pagepress."""

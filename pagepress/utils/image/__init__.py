"""Image helpers shared by the processors."""

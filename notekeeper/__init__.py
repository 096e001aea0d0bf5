"""Note organization, search and companion mirror sync."""

__version__ = "0.1.0"

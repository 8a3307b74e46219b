"""Per-app disk usage reporting for Steam data on a Steam Deck."""

__version__ = "0.1.0"

"""TOC buffer management and replenishment recommendations."""

__version__ = "0.4.0"

"""Podcast feed catalog: fetch feed metadata and keep one record per feed URL."""

__version__ = "0.1.0"

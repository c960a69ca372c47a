"""HLS relay for live streams published on video pages."""

__version__ = "0.1.0"

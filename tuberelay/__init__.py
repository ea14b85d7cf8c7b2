"""HTTP relay that delegates media retrieval to yt-dlp."""

__version__ = "1.0.0"

"""Episode resolution and deduplication for a nyaa torrent auto-downloader."""

__version__ = "0.1.0"

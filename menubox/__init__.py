"""MenuBox - restaurant menu ingestion and enrichment service."""

__version__ = "0.3.0"

"""ragpipe: document ingestion and retrieval core for retrieval-augmented generation."""

__version__ = "0.1.0"

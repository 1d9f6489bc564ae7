"""Local hashed embeddings, hybrid retrieval, ranking metrics and evaluation types for a chunked corpus in SQLite."""

__version__ = "0.1.0"
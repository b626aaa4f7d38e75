"""Tab indexing coordinator: lifecycle tracking, durable state and full-text search."""

__version__ = "0.1.0"

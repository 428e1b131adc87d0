"""emlvault: bulk indexing of .eml archives into SQLite."""

__version__ = "1.0.0"

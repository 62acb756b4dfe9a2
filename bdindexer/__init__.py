"""Row types, SQLite validator storage and an HTTP query actions service for a Cosmos SDK chain indexer."""

__version__ = "0.1.0"
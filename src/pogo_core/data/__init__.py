"""Data layer: SQLite store and models."""

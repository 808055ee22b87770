"""Utility functions."""

from .timestamps import Clock, from_db, to_db, utcnow

__all__ = ["Clock", "from_db", "to_db", "utcnow"]

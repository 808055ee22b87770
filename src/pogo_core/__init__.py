"""Pokemon GO metadata store with scheduled, audited data updates."""

__version__ = "0.1.0"

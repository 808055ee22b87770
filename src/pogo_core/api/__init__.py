"""HTTP API for monitoring and controlling data updates."""

"""HTTP API for Courtside."""

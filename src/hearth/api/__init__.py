"""HTTP API for local clients."""

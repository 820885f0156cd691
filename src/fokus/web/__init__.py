"""HTTP API for Fokus."""

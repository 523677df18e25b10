"""HTTP API for Custody Core."""

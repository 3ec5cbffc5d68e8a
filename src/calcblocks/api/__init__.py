"""HTTP API for tool evaluation, computation and lint."""

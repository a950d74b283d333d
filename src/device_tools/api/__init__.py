"""HTTP API for listing and invoking tools."""

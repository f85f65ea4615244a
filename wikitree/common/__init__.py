"""Shared helpers (logging, configuration)."""

"""Utility helpers (logging, debouncing)."""

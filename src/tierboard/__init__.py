"""Tier list board engine: reducer, history, persistence, registry and search."""

__version__ = "0.3.0"

__all__ = ["__version__"]

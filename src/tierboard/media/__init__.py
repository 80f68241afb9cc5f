"""Session-wide media registry, detail resolution and background enrichment."""

from .enrichment import BackgroundEnricher
from .registry import MediaRegistry
from .resolver import MediaResolver, resolve_board

__all__ = ["BackgroundEnricher", "MediaRegistry", "MediaResolver", "resolve_board"]

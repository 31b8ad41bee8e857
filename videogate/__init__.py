"""Videogate: deep-link video gateway (metadata lookup + range-aware streaming)."""

__version__ = "1.0.0"

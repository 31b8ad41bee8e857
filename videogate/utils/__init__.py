"""Utility helpers for the Videogate backend.

Submodules:
- aws: object stream gateway over S3-compatible storage
- ranges: single-range `Range` header parsing
"""

__all__: list[str] = []

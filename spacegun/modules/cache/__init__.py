"""
Cache Module - Black Box Interface

Purpose: Memoize expensive gateway reads for a fixed time
Interface: TTLCache.calculate(), invalidate(), clear()
Hidden: Timestamps, in-flight computation tracking

Concurrent callers for one key share a single computation.
"""

from .cache import TTLCache

__all__ = ["TTLCache"]

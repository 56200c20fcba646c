"""
Caching of formatted analysis results.
"""

from .smart_cache import CacheEntry, CacheKind, ExpiryPolicy, SmartCache, fingerprint

__all__ = [
    "CacheEntry",
    "CacheKind",
    "ExpiryPolicy",
    "SmartCache",
    "fingerprint",
]

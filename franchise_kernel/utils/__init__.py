"""Utility modules for the franchise kernel."""

from franchise_kernel.utils.ttl_cache import TTLCache

__all__ = ["TTLCache"]

"""
HTTP download cache.
"""

from yb.core.services.download.cache import Downloader, cache_filename_for_url, cache_status, clear_cache

__all__ = ["Downloader", "cache_filename_for_url", "cache_status", "clear_cache"]

"""Sorted, metadata-enriched directory listings."""
from .listing_cache import DirectoryListingCache
from .sorting import normalize_sort_option, sort_items

__all__ = ["DirectoryListingCache", "normalize_sort_option", "sort_items"]

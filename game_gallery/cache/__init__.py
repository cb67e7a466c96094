# Cache package
from .rwlock import ReadWriteLock
from .search_cache import CacheEntry, SearchCache, SearchResult, make_cache_key

# Controllers package
from .cache_cleanup import CacheCleanupService

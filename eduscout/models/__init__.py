"""SQLAlchemy ORM models."""

from eduscout.models.base import Base
from eduscout.models.search_cache import SearchCacheEntry
from eduscout.models.search_history import SearchHistory

__all__ = ["Base", "SearchCacheEntry", "SearchHistory"]

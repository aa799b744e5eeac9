"""SQLAlchemy ORM models."""

from chefstream.models.base import Base
from chefstream.models.search_cache import SearchCache

__all__ = ["Base", "SearchCache"]

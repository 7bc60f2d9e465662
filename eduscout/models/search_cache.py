"""SearchCacheEntry model — append-only cache of full search result sets.

One logical entry per (query, content_type) pair. Rows are never updated:
every write inserts a new version and reads take the newest unexpired one.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from eduscout.models.base import Base, JSONType


class SearchCacheEntry(Base):
    """Cached SearchResultSet payload with optional expiry."""

    __tablename__ = "search_cache"
    __table_args__ = (
        Index("ix_search_cache_lookup", "query", "content_type", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    query: Mapped[str] = mapped_column(String(500), nullable=False)
    # Bucket key: "{scope}:{learning level}"
    content_type: Mapped[str] = mapped_column(String(64), nullable=False)
    results: Mapped[dict] = mapped_column(JSONType, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True,
    )

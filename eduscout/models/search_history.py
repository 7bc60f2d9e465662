"""SearchHistory model — logs every search request for the learner's history."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from eduscout.models.base import Base


class SearchHistory(Base):
    """Persistent log of completed searches."""

    __tablename__ = "search_history"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    query: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    learning_level: Mapped[str] = mapped_column(String(20), nullable=False)
    results_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    execution_time_ms: Mapped[int] = mapped_column(Integer, nullable=False, insert_default=0)
    client_ip_hash: Mapped[str] = mapped_column(String(64), nullable=False, insert_default="")
    cached: Mapped[bool] = mapped_column(Boolean, nullable=False, insert_default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

"""SearchCache model — persisted YouTube search pages keyed by a hashed query."""

from datetime import datetime, timezone

from sqlalchemy import JSON, CheckConstraint, DateTime, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from chefstream.models.base import Base


class SearchCache(Base):
    """One cached ResultSet per query key. TTL is enforced at read time."""

    __tablename__ = "search_cache"

    # SHA-256 of "v1:query|locale|pageToken", see services/cache_keys.py
    query_key: Mapped[str] = mapped_column(String(64), primary_key=True)
    results_json: Mapped[dict] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True,
    )

    __table_args__ = (
        CheckConstraint("expires_at > created_at", name="expires_after_created"),
    )

    def __repr__(self) -> str:
        return f"<SearchCache(key='{self.query_key[:12]}', expires_at={self.expires_at})>"

"""SQLAlchemy ORM models for the property cache document store."""

from datetime import datetime

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    JSON,
    Index,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class PropertyCacheRecord(Base):
    """Current snapshot per address key. The flattened document lives in ``document``."""

    __tablename__ = "property_cache"

    collection: Mapped[str] = mapped_column(String(100), primary_key=True)
    doc_id: Mapped[str] = mapped_column(String(100), primary_key=True)

    document: Mapped[dict] = mapped_column(JSON)
    scrape_count: Mapped[int] = mapped_column(Integer, default=1)

    scraped_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class PropertyCacheVersion(Base):
    """Append-only archive of superseded snapshots."""

    __tablename__ = "property_cache_versions"
    __table_args__ = (Index("ix_property_cache_versions_key", "collection", "doc_id", "scraped_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    collection: Mapped[str] = mapped_column(String(100))
    doc_id: Mapped[str] = mapped_column(String(100))
    version_id: Mapped[str] = mapped_column(String(32))  # write timestamp, epoch ms
    snapshot: Mapped[dict] = mapped_column(JSON)
    scraped_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    archived_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

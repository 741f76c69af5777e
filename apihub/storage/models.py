"""ORM model for operational events raised by site operations."""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, func

from .database import Base


class SiteEvent(Base):
    __tablename__ = "site_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ts = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    level = Column(String(16), nullable=False)
    kind = Column(String(64), nullable=False)
    request_id = Column(String(64))
    site = Column(String(255))
    variant = Column(String(32))
    operation = Column(String(32))
    error_code = Column(String(64))
    message = Column(String(512))
    meta = Column(Text)

    __table_args__ = (
        Index("ix_site_events_ts", "ts"),
        Index("ix_site_events_kind_ts", "kind", "ts"),
    )

"""SQLAlchemy model for NAMASTE to ICD-11 mapping records."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from namaste_sync.db.base import Base


class MappingRecordRow(Base):
    __tablename__ = "mapping_records"

    code: Mapped[str] = mapped_column(String(32), primary_key=True)
    term: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    group: Mapped[str] = mapped_column("group_name", Text, nullable=False, default="")
    tm2_code: Mapped[str] = mapped_column(String(32), nullable=False, default="", index=True)
    tm2_description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    biomedicine_code: Mapped[str] = mapped_column(String(32), nullable=False, default="", index=True)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("ix_mapping_records_confidence_code", "confidence", "code"),
    )

from __future__ import annotations

import datetime as dt

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Base(DeclarativeBase):
    pass


class Property(Base):
    """
    Listing row owned by the listings CRUD. Only the columns the image
    pipeline reads are mapped here.
    """

    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), default="")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    images = relationship("PropertyImage", back_populates="property", cascade="all, delete-orphan")


class PropertyImage(Base):
    """One moderation record per uploaded image."""

    __tablename__ = "property_images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    property_id: Mapped[int] = mapped_column(ForeignKey("properties.id"), index=True)
    file_name: Mapped[str] = mapped_column(String(255), default="")
    # Relative uploads path. NULL once the file has been deleted (UNSAFE).
    file_path: Mapped[str | None] = mapped_column(String(512), nullable=True)
    original_filename: Mapped[str] = mapped_column(String(255), default="")
    content_type: Mapped[str] = mapped_column(String(100), default="")
    size_bytes: Mapped[int] = mapped_column(Integer, default=0)
    moderation_status: Mapped[str] = mapped_column(String(20), index=True)  # SAFE|UNSAFE|NEEDS_REVIEW|PENDING
    moderation_reason: Mapped[str] = mapped_column(Text, default="")
    reason_code: Mapped[str] = mapped_column(String(40), default="", index=True)
    confidence_scores_json: Mapped[str] = mapped_column(Text, default="{}")
    flagged_labels_json: Mapped[str] = mapped_column(Text, default="[]")
    property_labels_json: Mapped[str] = mapped_column(Text, default="[]")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    checked_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    property = relationship("Property", back_populates="images")
    review_ticket = relationship("ReviewTicket", back_populates="image", uselist=False)


class ReviewTicket(Base):
    __tablename__ = "moderation_review_queue"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    image_id: Mapped[int] = mapped_column(ForeignKey("property_images.id"), unique=True, index=True)
    status: Mapped[str] = mapped_column(String(20), default="OPEN", index=True)  # OPEN|APPROVED|REJECTED
    reviewer_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    review_notes: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    resolved_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    image = relationship("PropertyImage", back_populates="review_ticket")


class ModerationLog(Base):
    __tablename__ = "moderation_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    actor_user_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)  # NULL for automated actions
    entity_type: Mapped[str] = mapped_column(String(40), index=True)  # property_image|review_ticket
    entity_id: Mapped[int] = mapped_column(Integer, index=True)
    action: Mapped[str] = mapped_column(String(40), index=True)  # safe|unsafe|needs_review|pending|approve|reject
    reason: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

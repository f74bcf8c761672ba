from __future__ import annotations

import datetime as dt
import json
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from moderation.models import ModerationLog, PropertyImage, ReviewTicket
from moderation.schemas import ModerationRecord, TicketStatus


class PersistenceError(RuntimeError):
    pass


class ModerationStore(Protocol):
    """Where the orchestrator hands its records. Nothing is durable until `commit()` returns."""

    def add_record(self, record: ModerationRecord) -> int:
        ...

    def add_review_ticket(self, record_id: int) -> int:
        ...

    def commit(self) -> None:
        ...


def record_to_row(record: ModerationRecord) -> PropertyImage:
    return PropertyImage(
        property_id=int(record.property_id),
        file_name=record.file_name,
        file_path=record.file_path,
        original_filename=record.original_filename,
        content_type=record.content_type,
        size_bytes=int(record.size_bytes),
        moderation_status=record.status.value,
        moderation_reason=record.reason,
        reason_code=record.reason_code,
        confidence_scores_json=json.dumps(dict(record.confidence_scores), sort_keys=True),
        flagged_labels_json=json.dumps(list(record.flagged_labels)),
        property_labels_json=json.dumps(list(record.property_labels)),
        checked_at=dt.datetime.now(dt.timezone.utc),
    )


class SqlModerationStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def add_record(self, record: ModerationRecord) -> int:
        row = record_to_row(record)
        self.db.add(row)
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save image record: {e}") from e
        self.log(entity_type="property_image", entity_id=row.id, action=record.status.value.lower(), reason=record.reason_code)
        return int(row.id)

    def add_review_ticket(self, record_id: int) -> int:
        ticket = ReviewTicket(image_id=int(record_id), status=TicketStatus.OPEN.value)
        self.db.add(ticket)
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create review ticket: {e}") from e
        return int(ticket.id)

    def commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to commit moderation records: {e}") from e

    def log(
        self,
        *,
        entity_type: str,
        entity_id: int,
        action: str,
        reason: str = "",
        actor_user_id: int | None = None,
    ) -> None:
        self.db.add(
            ModerationLog(
                actor_user_id=actor_user_id,
                entity_type=(entity_type or "").strip(),
                entity_id=int(entity_id),
                action=(action or "").strip(),
                reason=(reason or "").strip(),
            )
        )

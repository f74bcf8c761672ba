"""
Human review queue for NEEDS_REVIEW uploads.

Approving moves the file from the review folder into the property folder and
flips the record to SAFE. Rejecting deletes the file and flips the record to
UNSAFE with no path. Both close the ticket and leave an audit log row.
"""
from __future__ import annotations

import datetime as dt
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from moderation.models import ModerationLog, PropertyImage, ReviewTicket
from moderation.policy import ModerationPolicy
from moderation.schemas import RecordStatus, TicketStatus
from moderation.storage import UploadStorage
from moderation.store import PersistenceError

logger = logging.getLogger(__name__)


class TicketNotOpen(RuntimeError):
    pass


class ReviewQueue:
    def __init__(self, db: Session, storage: UploadStorage, policy: ModerationPolicy | None = None) -> None:
        self.db = db
        self.storage = storage
        self.policy = policy or ModerationPolicy()

    def list_open(self, *, page: int = 1, limit: int = 20) -> tuple[list[ReviewTicket], int]:
        page = max(1, int(page))
        limit = max(1, min(100, int(limit)))
        total = int(
            self.db.execute(
                select(func.count()).select_from(ReviewTicket).where(ReviewTicket.status == TicketStatus.OPEN.value)
            ).scalar_one()
        )
        tickets = (
            self.db.execute(
                select(ReviewTicket)
                .options(selectinload(ReviewTicket.image))
                .where(ReviewTicket.status == TicketStatus.OPEN.value)
                .order_by(ReviewTicket.created_at.desc(), ReviewTicket.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            .scalars()
            .all()
        )
        return list(tickets), total

    def _open_ticket(self, ticket_id: int) -> ReviewTicket:
        ticket = self.db.get(ReviewTicket, int(ticket_id))
        if ticket is None:
            raise LookupError(f"Review ticket {ticket_id} not found")
        if ticket.status != TicketStatus.OPEN.value:
            raise TicketNotOpen(f"Review ticket {ticket_id} is already {ticket.status}")
        return ticket

    def _close(
        self,
        ticket: ReviewTicket,
        image: PropertyImage,
        *,
        status: TicketStatus,
        reviewer_id: int | None,
        notes: str,
    ) -> None:
        now = dt.datetime.now(dt.timezone.utc)
        ticket.status = status.value
        ticket.reviewer_id = reviewer_id
        ticket.review_notes = (notes or "").strip()
        ticket.resolved_at = now
        image.checked_at = now
        action = "approve" if status is TicketStatus.APPROVED else "reject"
        self.db.add(
            ModerationLog(
                actor_user_id=reviewer_id,
                entity_type="review_ticket",
                entity_id=int(ticket.id),
                action=action,
                reason=ticket.review_notes,
            )
        )

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to save review decision: {e}") from e

    def approve(self, ticket_id: int, *, reviewer_id: int | None = None, notes: str = "") -> PropertyImage:
        ticket = self._open_ticket(ticket_id)
        image = ticket.image
        src = self.storage.absolute_path(image.file_path or "")
        dest = self.storage.move_to_property(src, image.property_id)

        image.file_path = self.storage.relative_path(dest)
        image.moderation_status = RecordStatus.SAFE.value
        image.moderation_reason = self.policy.message("review_approved")
        self._close(ticket, image, status=TicketStatus.APPROVED, reviewer_id=reviewer_id, notes=notes)
        try:
            self._commit()
        except PersistenceError:
            logger.exception("Failed to approve review ticket %s; restoring %s", ticket_id, src)
            self.storage.move_back(dest, src)
            raise
        logger.info("Review ticket %s approved by reviewer_id=%s", ticket_id, reviewer_id)
        return image

    def reject(self, ticket_id: int, *, reviewer_id: int | None = None, notes: str = "") -> PropertyImage:
        ticket = self._open_ticket(ticket_id)
        image = ticket.image
        path = self.storage.absolute_path(image.file_path) if image.file_path else None

        image.file_path = None
        image.moderation_status = RecordStatus.UNSAFE.value
        image.moderation_reason = self.policy.message("review_rejected")
        self._close(ticket, image, status=TicketStatus.REJECTED, reviewer_id=reviewer_id, notes=notes)
        self._commit()

        if path and not self.storage.delete(path):
            logger.warning("Rejected review file left behind at %s (ticket_id=%s)", path, ticket_id)
        logger.info("Review ticket %s rejected by reviewer_id=%s", ticket_id, reviewer_id)
        return image

"""Tests for the human review queue."""

import os

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from moderation.models import ModerationLog, PropertyImage, ReviewTicket
from moderation.orchestrator import UploadOrchestrator
from moderation.review import ReviewQueue, TicketNotOpen
from moderation.schemas import UploadStatus
from moderation.store import PersistenceError, SqlModerationStore

OFF_TOPIC_LABELS = (("living room", 0.9), ("sky", 0.9), ("cloud", 0.8), ("text", 0.7))


@pytest.fixture
def queued(db, storage, sharp_png, make_vision, fake_vision):
    """Uploads one off-topic photo so it lands in the review queue."""
    vision = fake_vision(make_vision(labels=OFF_TOPIC_LABELS))
    orchestrator = UploadOrchestrator(storage=storage, store=SqlModerationStore(db), vision=vision)
    staged = storage.stage(data=sharp_png, original_filename="garden.png", content_type="image/png")
    result = orchestrator.process(staged, 1)
    assert result.status is UploadStatus.QUEUED_FOR_REVIEW
    return db.get(PropertyImage, result.record_id)


def test_list_open_returns_queued_tickets(db, storage, queued) -> None:
    tickets, total = ReviewQueue(db, storage).list_open()

    assert total == 1
    assert [t.image_id for t in tickets] == [queued.id]
    assert tickets[0].image.reason_code == "not_property"


def test_list_open_paginates(db, storage, sharp_png, make_vision, fake_vision) -> None:
    vision = fake_vision(make_vision(labels=OFF_TOPIC_LABELS))
    orchestrator = UploadOrchestrator(storage=storage, store=SqlModerationStore(db), vision=vision)
    for i in range(3):
        staged = storage.stage(data=sharp_png, original_filename=f"p{i}.png", content_type="image/png")
        orchestrator.process(staged, 1)

    queue = ReviewQueue(db, storage)
    first, total = queue.list_open(page=1, limit=2)
    second, _ = queue.list_open(page=2, limit=2)

    assert total == 3
    assert len(first) == 2
    assert len(second) == 1
    assert {t.id for t in first}.isdisjoint({t.id for t in second})


def test_approve_moves_file_into_property_folder(db, storage, queued) -> None:
    review_path = storage.absolute_path(queued.file_path)
    ticket_id = queued.review_ticket.id

    image = ReviewQueue(db, storage).approve(ticket_id, reviewer_id=7, notes="Garden shot, fine")

    assert image.moderation_status == "SAFE"
    assert image.file_path.startswith("properties/1/")
    assert os.path.isfile(storage.absolute_path(image.file_path))
    assert not os.path.exists(review_path)
    ticket = image.review_ticket
    assert ticket.status == "APPROVED"
    assert ticket.reviewer_id == 7
    assert ticket.review_notes == "Garden shot, fine"
    assert ticket.resolved_at is not None
    log = db.execute(select(ModerationLog).where(ModerationLog.action == "approve")).scalar_one()
    assert log.actor_user_id == 7
    assert log.entity_id == ticket_id


def test_reject_deletes_file_and_clears_path(db, storage, queued) -> None:
    review_path = storage.absolute_path(queued.file_path)

    image = ReviewQueue(db, storage).reject(queued.review_ticket.id, reviewer_id=7, notes="Not this listing")

    assert image.moderation_status == "UNSAFE"
    assert image.file_path is None
    assert not os.path.exists(review_path)
    assert image.review_ticket.status == "REJECTED"


def test_resolving_twice_is_refused(db, storage, queued) -> None:
    queue = ReviewQueue(db, storage)
    ticket_id = queued.review_ticket.id
    queue.approve(ticket_id, reviewer_id=7)

    with pytest.raises(TicketNotOpen):
        queue.reject(ticket_id, reviewer_id=8)


def test_unknown_ticket(db, storage) -> None:
    with pytest.raises(LookupError):
        ReviewQueue(db, storage).approve(404)


def test_failed_approve_leaves_file_in_review_folder(db, storage, queued, monkeypatch) -> None:
    review_path = storage.absolute_path(queued.file_path)
    ticket_id = queued.review_ticket.id

    def _locked_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "commit", _locked_commit)

    with pytest.raises(PersistenceError):
        ReviewQueue(db, storage).approve(ticket_id, reviewer_id=7)

    assert os.path.isfile(review_path)
    assert os.listdir(os.path.join(storage.properties_dir, "1")) == []
    ticket = db.get(ReviewTicket, ticket_id)
    assert ticket.status == "OPEN"
    assert ticket.image.moderation_status == "NEEDS_REVIEW"
    assert ticket.image.file_path.startswith("review/1/")

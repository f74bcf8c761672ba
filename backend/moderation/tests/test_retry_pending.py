"""Tests for re-moderating uploads parked while inference was down."""

import os

from sqlalchemy import select

from moderation.models import PropertyImage
from moderation.orchestrator import UploadOrchestrator
from moderation.policy import ModerationPolicy
from moderation.schemas import UploadStatus
from moderation.store import SqlModerationStore
from scripts.retry_pending import retry_one


def _park(session_factory, storage, staged, fake_vision) -> int:
    with session_factory() as db:
        orchestrator = UploadOrchestrator(
            storage=storage,
            store=SqlModerationStore(db),
            vision=fake_vision(error="Vision API unreachable"),
        )
        result = orchestrator.process(staged, 1)
    assert result.status is UploadStatus.SERVICE_UNAVAILABLE
    return result.record_id


def test_pending_upload_is_moderated_once_inference_is_back(session_factory, storage, staged, fake_vision) -> None:
    pending_id = _park(session_factory, storage, staged, fake_vision)

    status = retry_one(
        pending_id,
        storage=storage,
        policy=ModerationPolicy(),
        vision=fake_vision(),
        factory=session_factory,
    )

    assert status is UploadStatus.APPROVED
    assert not os.path.exists(staged.path)
    with session_factory() as db:
        rows = db.execute(select(PropertyImage)).scalars().all()
    assert [r.moderation_status for r in rows] == ["SAFE"]
    assert rows[0].file_path.startswith("properties/1/")


def test_pending_upload_stays_pending_while_inference_is_down(session_factory, storage, staged, fake_vision) -> None:
    pending_id = _park(session_factory, storage, staged, fake_vision)

    status = retry_one(
        pending_id,
        storage=storage,
        policy=ModerationPolicy(),
        vision=fake_vision(error="still down"),
        factory=session_factory,
    )

    assert status is UploadStatus.SERVICE_UNAVAILABLE
    assert os.path.exists(staged.path)
    with session_factory() as db:
        rows = db.execute(select(PropertyImage)).scalars().all()
    assert [r.moderation_status for r in rows] == ["PENDING"]


def test_non_pending_rows_are_skipped(session_factory, storage, staged, fake_vision) -> None:
    with session_factory() as db:
        result = UploadOrchestrator(storage=storage, store=SqlModerationStore(db), vision=fake_vision()).process(staged, 1)

    status = retry_one(
        result.record_id,
        storage=storage,
        policy=ModerationPolicy(),
        vision=fake_vision(),
        factory=session_factory,
    )

    assert status is None

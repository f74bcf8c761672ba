"""
Re-run moderation for uploads parked as PENDING while the vision service was down.

Usage (from backend/):
    python -m scripts.retry_pending [--limit 50]

Each PENDING row is replaced by the outcome of a fresh pass; if inference
fails again the upload simply stays PENDING.
"""
from __future__ import annotations

import argparse
import logging

from sqlalchemy import select

from moderation.db import SessionLocal, session_scope
from moderation.models import PropertyImage
from moderation.orchestrator import UploadOrchestrator
from moderation.policy import ModerationPolicy
from moderation.schemas import RecordStatus, UploadStatus
from moderation.storage import StorageError, UploadStorage
from moderation.store import SqlModerationStore
from moderation.vision import VisionClient

logger = logging.getLogger("retry_pending")


def _pending_ids(limit: int) -> list[int]:
    with session_scope() as db:
        return list(
            db.execute(
                select(PropertyImage.id)
                .where(PropertyImage.moderation_status == RecordStatus.PENDING.value)
                .order_by(PropertyImage.id.asc())
                .limit(int(limit))
            )
            .scalars()
            .all()
        )


def retry_one(
    image_id: int,
    *,
    storage: UploadStorage,
    policy: ModerationPolicy,
    vision,
    factory=SessionLocal,
) -> UploadStatus | None:
    with session_scope(factory) as db:
        row = db.get(PropertyImage, int(image_id))
        if row is None or row.moderation_status != RecordStatus.PENDING.value or not row.file_path:
            return None
        try:
            staged = storage.load_staged(
                storage.absolute_path(row.file_path),
                original_filename=row.original_filename,
                content_type=row.content_type,
            )
        except StorageError:
            logger.warning("PENDING image %s has no staged file, skipping", image_id, exc_info=True)
            return None
        property_id = int(row.property_id)
        db.delete(row)
        db.flush()
        orchestrator = UploadOrchestrator(storage=storage, store=SqlModerationStore(db), vision=vision, policy=policy)
        result = orchestrator.process(staged, property_id)
        logger.info("PENDING image %s re-moderated: %s (record_id=%s)", image_id, result.status.value, result.record_id)
        return result.status


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--limit", type=int, default=50)
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    storage = UploadStorage.from_env()
    policy = ModerationPolicy.from_env()
    vision = VisionClient()
    done = 0
    for image_id in _pending_ids(args.limit):
        status = retry_one(image_id, storage=storage, policy=policy, vision=vision)
        if status is not None and status is not UploadStatus.SERVICE_UNAVAILABLE:
            done += 1
    print(f"Re-moderated {done} pending image(s).")


if __name__ == "__main__":
    main()

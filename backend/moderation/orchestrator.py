"""
Upload state machine: STAGED -> SAFE | UNSAFE | NEEDS_REVIEW (or PENDING
when no decision could be made).

Each transition pairs one filesystem action with one durable record:

    SAFE          move into the property folder          record with path
    UNSAFE        delete the staged file                 record without path
    NEEDS_REVIEW  move into the review folder            record with path + OPEN ticket
    PENDING       leave the staged file where it is      record with the staged path

A record never points at a file that is not there: if the record cannot be
committed after a move, the file is moved back to staging.
"""
from __future__ import annotations

import logging
import os

from moderation.blur import BlurScorer
from moderation.decision import ModerationDecisionEngine
from moderation.policy import ModerationPolicy
from moderation.safety import SafetyLabelEvaluator
from moderation.schemas import (
    ModerationDecision,
    ModerationRecord,
    Outcome,
    RawImage,
    RecordStatus,
    UploadResult,
    UploadStatus,
)
from moderation.storage import UploadStorage
from moderation.store import ModerationStore, PersistenceError
from moderation.vision import VisionAnalyzer, VisionServiceError
from moderation.vocabulary import PUBLIC_MESSAGES

logger = logging.getLogger(__name__)


class UploadOrchestrator:
    def __init__(
        self,
        *,
        storage: UploadStorage,
        store: ModerationStore,
        vision: VisionAnalyzer | None = None,
        policy: ModerationPolicy | None = None,
        evaluator: SafetyLabelEvaluator | None = None,
        engine: ModerationDecisionEngine | None = None,
        blur_scorer: BlurScorer | None = None,
    ) -> None:
        self.policy = policy or ModerationPolicy()
        self.storage = storage
        self.store = store
        self.vision = vision
        self.evaluator = evaluator or SafetyLabelEvaluator(self.policy)
        self.engine = engine or ModerationDecisionEngine(self.policy)
        self.blur_scorer = blur_scorer or BlurScorer(self.policy.blur_threshold, workers=self.policy.blur_workers)

    def _record(
        self,
        staged: RawImage,
        property_id: int,
        status: RecordStatus,
        *,
        reason: str,
        reason_code: str,
        file_path: str | None,
        decision: ModerationDecision | None = None,
    ) -> ModerationRecord:
        return ModerationRecord(
            property_id=int(property_id),
            status=status,
            reason=reason,
            reason_code=reason_code,
            file_name=os.path.basename(staged.path),
            original_filename=staged.original_filename,
            content_type=staged.mime_type,
            size_bytes=int(staged.size_bytes),
            file_path=file_path,
            confidence_scores=decision.confidence_scores if decision else {},
            flagged_labels=decision.flagged_labels if decision else (),
            property_labels=decision.property_labels if decision else (),
        )

    def _persist(self, record: ModerationRecord, *, with_ticket: bool) -> int:
        record_id = self.store.add_record(record)
        if with_ticket:
            self.store.add_review_ticket(record_id)
        self.store.commit()
        return record_id

    def _move_and_persist(self, staged: RawImage, decision: ModerationDecision, property_id: int) -> tuple[int, str]:
        review = decision.outcome is Outcome.NEEDS_REVIEW
        # StorageError propagates: nothing recorded, staged file untouched.
        if review:
            dest = self.storage.move_to_review(staged.path, property_id)
        else:
            dest = self.storage.move_to_property(staged.path, property_id)

        status = RecordStatus.NEEDS_REVIEW if review else RecordStatus.SAFE
        record = self._record(
            staged,
            property_id,
            status,
            reason=decision.reason,
            reason_code=decision.reason_code,
            file_path=self.storage.relative_path(dest),
            decision=decision,
        )
        try:
            record_id = self._persist(record, with_ticket=review)
        except PersistenceError:
            logger.exception("Failed to record moderated image property_id=%s file=%s; restoring staged file", property_id, dest)
            self.storage.move_back(dest, staged.path)
            raise
        return record_id, dest

    def apply(self, staged: RawImage, decision: ModerationDecision, property_id: int) -> UploadResult:
        if decision.outcome is Outcome.UNSAFE:
            record = self._record(
                staged,
                property_id,
                RecordStatus.UNSAFE,
                reason=decision.reason,
                reason_code=decision.reason_code,
                file_path=None,
                decision=decision,
            )
            record_id = self._persist(record, with_ticket=False)
            if not self.storage.delete(staged.path):
                # The record already says rejected; the temp file is only a cleanup concern.
                logger.warning("Rejected upload left behind at %s (record_id=%s)", staged.path, record_id)
            return UploadResult(
                status=UploadStatus.REJECTED,
                record_id=record_id,
                public_url=None,
                message=PUBLIC_MESSAGES["rejected"],
                decision=decision,
            )

        record_id, dest = self._move_and_persist(staged, decision, property_id)
        if decision.outcome is Outcome.NEEDS_REVIEW:
            return UploadResult(
                status=UploadStatus.QUEUED_FOR_REVIEW,
                record_id=record_id,
                public_url=None,
                message=PUBLIC_MESSAGES["queued_for_review"],
                decision=decision,
            )
        return UploadResult(
            status=UploadStatus.APPROVED,
            record_id=record_id,
            public_url=self.storage.public_url(dest),
            message=PUBLIC_MESSAGES["approved"],
            decision=decision,
        )

    def record_pending(self, staged: RawImage, property_id: int, error: str) -> UploadResult:
        """Inference failed: keep the staged file for a retry and say so in the record."""
        record = self._record(
            staged,
            property_id,
            RecordStatus.PENDING,
            reason=f"{self.policy.message('inference_unavailable')} ({error})",
            reason_code="api_error",
            file_path=self.storage.relative_path(staged.path),
        )
        record_id = self._persist(record, with_ticket=False)
        return UploadResult(
            status=UploadStatus.SERVICE_UNAVAILABLE,
            record_id=record_id,
            public_url=None,
            message=PUBLIC_MESSAGES["service_unavailable"],
        )

    def decide(self, staged: RawImage, vision_result) -> ModerationDecision:
        safety = self.evaluator.evaluate(vision_result)
        blur = self.blur_scorer.score_image(staged)
        return self.engine.decide(safety, blur, staged.dimensions)

    def process(self, staged: RawImage, property_id: int) -> UploadResult:
        if self.vision is None:
            return self.record_pending(staged, property_id, "no vision analyzer configured")
        try:
            vision_result = self.vision.analyze(staged.data)
        except VisionServiceError as e:
            logger.warning("Vision inference failed property_id=%s file=%s: %s", property_id, staged.path, e)
            return self.record_pending(staged, property_id, str(e))

        decision = self.decide(staged, vision_result)
        logger.info(
            "Image moderated property_id=%s file=%s outcome=%s reason_code=%s flagged=%s",
            property_id,
            os.path.basename(staged.path),
            decision.outcome.value,
            decision.reason_code,
            ",".join(decision.flagged_labels) or "-",
        )
        return self.apply(staged, decision, property_id)

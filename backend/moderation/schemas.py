"""Value objects passed between the moderation stages."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


class Outcome(str, enum.Enum):
    SAFE = "SAFE"
    UNSAFE = "UNSAFE"
    NEEDS_REVIEW = "NEEDS_REVIEW"


class RecordStatus(str, enum.Enum):
    """Status stored on a moderation record. PENDING means no decision could be made."""

    SAFE = "SAFE"
    UNSAFE = "UNSAFE"
    NEEDS_REVIEW = "NEEDS_REVIEW"
    PENDING = "PENDING"


class TicketStatus(str, enum.Enum):
    OPEN = "OPEN"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class QualityRating(str, enum.Enum):
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    POOR = "poor"
    VERY_POOR = "very_poor"


class BlurMethod(str, enum.Enum):
    PIXEL = "pixel"
    FALLBACK = "fallback"
    NONE = "none"


class Likelihood(enum.IntEnum):
    """
    Safe-search likelihood buckets, ordered so that comparisons work
    (UNKNOWN sorts lowest and never flags).
    """

    UNKNOWN = 0
    VERY_UNLIKELY = 1
    UNLIKELY = 2
    POSSIBLE = 3
    LIKELY = 4
    VERY_LIKELY = 5

    @property
    def score(self) -> float:
        return _LIKELIHOOD_SCORES[self]

    @classmethod
    def parse(cls, value: object) -> "Likelihood":
        """Accepts enum names ("LIKELY") or the vision API's integer codes."""
        if isinstance(value, Likelihood):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                return cls.UNKNOWN
        if isinstance(value, int) and not isinstance(value, bool):
            # Vision API proto numbering: 0 UNKNOWN, 1 VERY_UNLIKELY ... 5 VERY_LIKELY
            try:
                return cls(value)
            except ValueError:
                return cls.UNKNOWN
        return cls.UNKNOWN


_LIKELIHOOD_SCORES = {
    Likelihood.UNKNOWN: 0.5,
    Likelihood.VERY_UNLIKELY: 0.0,
    Likelihood.UNLIKELY: 0.2,
    Likelihood.POSSIBLE: 0.4,
    Likelihood.LIKELY: 0.7,
    Likelihood.VERY_LIKELY: 0.95,
}

SAFESEARCH_CATEGORIES = ("adult", "violence", "racy", "medical", "spoof")


def _frozen(mapping: Mapping | None) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class RawImage:
    """An upload staged on disk, plus what the upload layer already knows about it."""

    path: str
    data: bytes = field(repr=False)
    mime_type: str
    original_filename: str
    size_bytes: int
    width: int | None = None
    height: int | None = None

    @property
    def dimensions(self) -> tuple[int, int] | None:
        if self.width is None or self.height is None:
            return None
        return int(self.width), int(self.height)


@dataclass(frozen=True)
class BlurResult:
    blur_score: float
    is_blurry: bool
    quality_rating: QualityRating
    method: BlurMethod
    variance: float | None = None
    error: str | None = None


@dataclass(frozen=True)
class Label:
    description: str
    score: float


@dataclass(frozen=True)
class LocalizedObject:
    name: str
    score: float


@dataclass(frozen=True)
class VisionResult:
    """Structured output of one vision-inference call."""

    safe_search: Mapping[str, Likelihood] = field(default_factory=dict)
    labels: tuple[Label, ...] = ()
    objects: tuple[LocalizedObject, ...] = ()
    face_confidences: tuple[float, ...] = ()
    # Response sections the inference service did not return.
    missing: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "safe_search", _frozen(self.safe_search))


@dataclass(frozen=True)
class SafetyEvaluation:
    flagged_labels: tuple[str, ...]
    property_label_fraction: float
    confidence_scores: Mapping[str, float]
    raw_likelihoods: Mapping[str, Likelihood]
    property_labels: tuple[str, ...] = ()
    malformed: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "confidence_scores", _frozen(self.confidence_scores))
        object.__setattr__(self, "raw_likelihoods", _frozen(self.raw_likelihoods))


@dataclass(frozen=True)
class ModerationDecision:
    outcome: Outcome
    reason: str
    reason_code: str
    confidence_scores: Mapping[str, float]
    flagged_labels: tuple[str, ...] = ()
    property_labels: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "confidence_scores", _frozen(self.confidence_scores))


@dataclass(frozen=True)
class ModerationRecord:
    """What the orchestrator hands to the persistence boundary, once per image."""

    property_id: int
    status: RecordStatus
    reason: str
    reason_code: str
    file_name: str
    original_filename: str
    content_type: str
    size_bytes: int
    file_path: str | None
    confidence_scores: Mapping[str, float] = field(default_factory=dict)
    flagged_labels: tuple[str, ...] = ()
    property_labels: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "confidence_scores", _frozen(self.confidence_scores))
        if self.status is RecordStatus.UNSAFE and self.file_path is not None:
            raise ValueError("UNSAFE records must not reference a stored file")
        if self.status in (RecordStatus.SAFE, RecordStatus.NEEDS_REVIEW) and not self.file_path:
            raise ValueError(f"{self.status.value} records must reference a stored file")


class UploadStatus(str, enum.Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    QUEUED_FOR_REVIEW = "queued_for_review"
    SERVICE_UNAVAILABLE = "service_unavailable"


@dataclass(frozen=True)
class UploadResult:
    status: UploadStatus
    record_id: int | None
    public_url: str | None
    message: str
    decision: ModerationDecision | None = None

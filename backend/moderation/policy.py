from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from moderation import config, vocabulary
from moderation.schemas import Likelihood


@dataclass(frozen=True)
class ModerationPolicy:
    """
    Thresholds, vocabularies and messages used by the evaluator and the decision engine.

    One global policy applies to every property type.
    """

    blur_threshold: float = 0.3
    property_context_threshold: float = 0.3
    property_label_min_score: float = 0.3
    safesearch_min_likelihood: Likelihood = Likelihood.LIKELY
    face_threshold: float = 0.5
    human_object_threshold: float = 0.6
    human_label_threshold: float = 0.6
    animal_object_threshold: float = 0.6
    animal_label_threshold: float = 0.7
    min_width: int = 400
    min_height: int = 300
    blur_workers: int = 1

    hard_safety_categories: tuple[str, ...] = vocabulary.HARD_SAFETY_CATEGORIES
    human_labels: tuple[str, ...] = vocabulary.HUMAN_LABELS
    human_object_names: tuple[str, ...] = vocabulary.HUMAN_OBJECT_NAMES
    animal_labels: tuple[str, ...] = vocabulary.ANIMAL_LABELS
    property_labels: tuple[str, ...] = vocabulary.PROPERTY_LABELS
    messages: Mapping[str, str] = field(default_factory=lambda: vocabulary.MESSAGES, repr=False)

    @classmethod
    def from_env(cls) -> "ModerationPolicy":
        min_likelihood = Likelihood.parse(config.safesearch_min_likelihood())
        if min_likelihood is Likelihood.UNKNOWN:
            min_likelihood = Likelihood.LIKELY
        return cls(
            blur_threshold=config.blur_threshold(),
            property_context_threshold=config.property_context_threshold(),
            property_label_min_score=config.property_label_min_score(),
            safesearch_min_likelihood=min_likelihood,
            face_threshold=config.face_threshold(),
            human_object_threshold=config.human_object_threshold(),
            human_label_threshold=config.human_label_threshold(),
            animal_object_threshold=config.animal_object_threshold(),
            animal_label_threshold=config.animal_label_threshold(),
            min_width=config.min_image_width(),
            min_height=config.min_image_height(),
            blur_workers=config.blur_workers(),
        )

    def message(self, code: str, **values: object) -> str:
        return vocabulary.render_message(code, self.messages, **values)

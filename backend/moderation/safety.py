from __future__ import annotations

import logging
import re
from typing import Iterable

from moderation.policy import ModerationPolicy
from moderation.schemas import SAFESEARCH_CATEGORIES, Likelihood, SafetyEvaluation, VisionResult

logger = logging.getLogger(__name__)

HUMAN_DETECTED = "human_detected"
ANIMAL_DETECTED_PREFIX = "animal_detected:"


class VocabularyMatcher:
    """
    Case-insensitive matching against a term list.

    Whole-word by default ("dog house" matches "dog", "carpet" does not match "pet").
    Substring mode lets "flooring" match "floor".
    """

    def __init__(self, terms: Iterable[str], *, whole_word: bool = True) -> None:
        cleaned = sorted({t.strip().lower() for t in terms if t and t.strip()}, key=len, reverse=True)
        body = "|".join(re.escape(t) for t in cleaned)
        if whole_word:
            body = r"\b(?:" + body + r")\b"
        self._pattern = re.compile(body) if cleaned else None

    def matches(self, text: str) -> bool:
        if self._pattern is None:
            return False
        return self._pattern.search((text or "").lower()) is not None


def safesearch_flag(category: str) -> str:
    return f"{category}_content"


class SafetyLabelEvaluator:
    def __init__(self, policy: ModerationPolicy | None = None) -> None:
        self.policy = policy or ModerationPolicy()
        self._human = VocabularyMatcher(self.policy.human_labels)
        self._human_objects = {n.lower() for n in self.policy.human_object_names}
        self._animal = VocabularyMatcher(self.policy.animal_labels)
        self._property = VocabularyMatcher(self.policy.property_labels, whole_word=False)

    def evaluate(self, vision_result: VisionResult | None) -> SafetyEvaluation:
        if not isinstance(vision_result, VisionResult):
            logger.warning("Vision result missing or malformed (%s); nothing flagged", type(vision_result).__name__)
            return SafetyEvaluation(
                flagged_labels=(),
                property_label_fraction=0.0,
                confidence_scores={},
                raw_likelihoods={c: Likelihood.UNKNOWN for c in SAFESEARCH_CATEGORIES},
                malformed=True,
            )

        policy = self.policy
        scores: dict[str, float] = {}
        flagged: list[str] = []

        # Human presence: faces, then "person" objects, then label vocabulary.
        human = False
        for i, confidence in enumerate(vision_result.face_confidences):
            scores[f"face:{i}"] = float(confidence)
            if confidence >= policy.face_threshold:
                human = True
        for obj in vision_result.objects:
            name = obj.name.lower()
            scores[f"object:{name}"] = max(float(obj.score), scores.get(f"object:{name}", 0.0))
            if name in self._human_objects and obj.score >= policy.human_object_threshold:
                human = True
        for label in vision_result.labels:
            desc = label.description.lower()
            scores[desc] = max(float(label.score), scores.get(desc, 0.0))
            if self._human.matches(desc) and label.score >= policy.human_label_threshold:
                human = True
        if human:
            flagged.append(HUMAN_DETECTED)

        # Animal presence, highest confidence first.
        animals: dict[str, float] = {}
        for obj in vision_result.objects:
            name = obj.name.lower()
            if self._animal.matches(name) and obj.score >= policy.animal_object_threshold:
                animals[name] = max(float(obj.score), animals.get(name, 0.0))
        for label in vision_result.labels:
            desc = label.description.lower()
            if self._animal.matches(desc) and label.score >= policy.animal_label_threshold:
                animals[desc] = max(float(label.score), animals.get(desc, 0.0))
        for name, _ in sorted(animals.items(), key=lambda kv: (-kv[1], kv[0])):
            flagged.append(f"{ANIMAL_DETECTED_PREFIX}{name}")

        # Safe-search: a missing category stays UNKNOWN, which never flags.
        likelihoods: dict[str, Likelihood] = {}
        for category in SAFESEARCH_CATEGORIES:
            likelihood = Likelihood.parse(vision_result.safe_search.get(category))
            likelihoods[category] = likelihood
            scores[f"safesearch:{category}"] = likelihood.score
            if likelihood is not Likelihood.UNKNOWN and likelihood >= policy.safesearch_min_likelihood:
                flagged.append(safesearch_flag(category))

        # Property relevance, by label count.
        property_labels: list[str] = []
        for label in vision_result.labels:
            desc = label.description.lower()
            if label.score > policy.property_label_min_score and self._property.matches(desc) and desc not in property_labels:
                property_labels.append(desc)
        matched = sum(
            1
            for label in vision_result.labels
            if label.score > policy.property_label_min_score and self._property.matches(label.description)
        )
        total = len(vision_result.labels)
        fraction = matched / total if total else 0.0

        malformed = bool(vision_result.missing)
        if malformed:
            logger.warning("Vision result incomplete (missing %s); property relevance forced to 0", ", ".join(vision_result.missing))
            fraction = 0.0

        return SafetyEvaluation(
            flagged_labels=tuple(flagged),
            property_label_fraction=round(fraction, 4),
            confidence_scores=scores,
            raw_likelihoods=likelihoods,
            property_labels=tuple(property_labels),
            malformed=malformed,
        )

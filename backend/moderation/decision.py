"""
Combines the safety evaluation, the blur result and the image dimensions into
one moderation decision.

Precedence, first match wins:

1. any hard-safety flag (human, animal, adult/violence/racy)  -> UNSAFE
2. property relevance below the context threshold             -> NEEDS_REVIEW
3. blurry                                                     -> NEEDS_REVIEW
4. resolution below the minimum                               -> NEEDS_REVIEW
5. otherwise                                                  -> SAFE

Safety violations are rejected outright; relevance and quality problems go
to a human. Every score and flag is attached whichever rule fires.
"""
from __future__ import annotations

from moderation.policy import ModerationPolicy
from moderation.safety import ANIMAL_DETECTED_PREFIX, HUMAN_DETECTED, safesearch_flag
from moderation.schemas import BlurResult, ModerationDecision, Outcome, SafetyEvaluation


class ModerationDecisionEngine:
    def __init__(self, policy: ModerationPolicy | None = None) -> None:
        self.policy = policy or ModerationPolicy()
        self._hard_safesearch = {safesearch_flag(c): c for c in self.policy.hard_safety_categories}

    def _hard_flag_reason(self, flag: str) -> tuple[str, str] | None:
        if flag == HUMAN_DETECTED:
            return "human_detected", self.policy.message("human_detected")
        if flag.startswith(ANIMAL_DETECTED_PREFIX):
            name = flag[len(ANIMAL_DETECTED_PREFIX):]
            return "animal_detected", self.policy.message("animal_detected", animal_name=name)
        if flag in self._hard_safesearch:
            return flag, self.policy.message(flag)
        return None

    def decide(
        self,
        safety: SafetyEvaluation,
        blur: BlurResult | None = None,
        dimensions: tuple[int, int] | None = None,
    ) -> ModerationDecision:
        policy = self.policy

        scores = dict(safety.confidence_scores)
        scores["property_label_fraction"] = float(safety.property_label_fraction)
        if blur is not None:
            scores["blur_score"] = float(blur.blur_score)
            if blur.variance is not None:
                scores["blur_variance"] = float(blur.variance)

        def _decision(outcome: Outcome, code: str, reason: str) -> ModerationDecision:
            return ModerationDecision(
                outcome=outcome,
                reason=reason,
                reason_code=code,
                confidence_scores=scores,
                flagged_labels=tuple(safety.flagged_labels),
                property_labels=tuple(safety.property_labels),
            )

        for flag in safety.flagged_labels:
            hit = self._hard_flag_reason(flag)
            if hit is not None:
                return _decision(Outcome.UNSAFE, *hit)

        if safety.property_label_fraction < policy.property_context_threshold:
            return _decision(Outcome.NEEDS_REVIEW, "not_property", policy.message("not_property"))

        if blur is not None and blur.is_blurry:
            return _decision(Outcome.NEEDS_REVIEW, "blur_detected", policy.message("blur_detected"))

        if dimensions is not None:
            width, height = dimensions
            if width < policy.min_width or height < policy.min_height:
                return _decision(
                    Outcome.NEEDS_REVIEW,
                    "low_quality",
                    policy.message(
                        "low_quality",
                        width=width,
                        height=height,
                        min_width=policy.min_width,
                        min_height=policy.min_height,
                    ),
                )

        return _decision(Outcome.SAFE, "approved", policy.message("approved"))

"""Tests for building the moderation policy from the environment."""

from moderation.policy import ModerationPolicy
from moderation.safety import SafetyLabelEvaluator
from moderation.schemas import Likelihood
from moderation.vocabulary import MESSAGES


def test_defaults_share_the_message_table() -> None:
    a, b = ModerationPolicy(), ModerationPolicy()

    assert a.messages is MESSAGES
    assert a == b
    assert a.message("review_approved") == "Approved by a moderator."


def test_thresholds_come_from_the_environment(monkeypatch) -> None:
    monkeypatch.setenv("MODERATION_HUMAN_LABEL_THRESHOLD", "0.9")
    monkeypatch.setenv("MODERATION_HUMAN_OBJECT_THRESHOLD", "0.4")
    monkeypatch.setenv("MODERATION_BLUR_THRESHOLD", "7")
    monkeypatch.setenv("MODERATION_SAFESEARCH_MIN_LIKELIHOOD", "possible")

    policy = ModerationPolicy.from_env()

    assert policy.human_label_threshold == 0.9
    assert policy.human_object_threshold == 0.4
    assert policy.blur_threshold == 1.0
    assert policy.safesearch_min_likelihood is Likelihood.POSSIBLE


def test_human_label_threshold_is_tunable(monkeypatch, make_vision) -> None:
    monkeypatch.setenv("MODERATION_HUMAN_LABEL_THRESHOLD", "0.95")
    vision = make_vision(labels=(("living room", 0.9), ("person", 0.8)))

    assert SafetyLabelEvaluator().evaluate(vision).flagged_labels
    assert not SafetyLabelEvaluator(ModerationPolicy.from_env()).evaluate(vision).flagged_labels

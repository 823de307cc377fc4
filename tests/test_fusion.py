import pytest

from engines.fusion import fuse
from engines.model_analyzer import ModelDegraded, ModelOk
from engines.needs_types import (
    ATTENTION,
    LOW_ENGAGEMENT,
    MATH_PROCESSING,
    READING_PROCESSING,
    SOURCE_CULTURAL,
    SOURCE_MODEL,
    SOURCE_RULE,
    NeedsSignal,
)


def _rule(scores, confidence=0.6):
    return NeedsSignal(scores=scores, confidence=confidence, source=SOURCE_RULE)


def _model(scores, confidence=0.8):
    return NeedsSignal(scores=scores, confidence=confidence, source=SOURCE_MODEL)


def test_confidence_is_max_of_sources():
    profile = fuse([_rule({ATTENTION: 0.5}, 0.6)], ModelOk([_model({ATTENTION: 0.3}, 0.8)]))

    assert profile.confidence == pytest.approx(0.8)
    assert profile.fallback_used is False
    assert profile.model_source == "hybrid"


def test_per_category_maximum_wins():
    profile = fuse(
        [_rule({READING_PROCESSING: 0.7, ATTENTION: 0.2})],
        ModelOk([_model({ATTENTION: 0.6, MATH_PROCESSING: 0.4})]),
    )

    assert profile.scores == {READING_PROCESSING: 0.7, ATTENTION: 0.6, MATH_PROCESSING: 0.4}
    assert profile.winning_sources[READING_PROCESSING] == SOURCE_RULE
    assert profile.winning_sources[ATTENTION] == SOURCE_MODEL


def test_ties_go_to_the_model():
    profile = fuse([_rule({ATTENTION: 0.5})], ModelOk([_model({ATTENTION: 0.5})]))

    assert profile.winning_sources[ATTENTION] == SOURCE_MODEL


def test_degraded_model_falls_back_to_rule_signals(caplog):
    rule_signals = [_rule({READING_PROCESSING: 0.63}, 0.7), _rule({ATTENTION: 0.4}, 0.5)]

    with caplog.at_level("WARNING"):
        profile = fuse(rule_signals, ModelDegraded("needs model timed out after 5.0s"))

    assert profile.fallback_used is True
    assert profile.model_source == "fallback"
    assert profile.scores == {READING_PROCESSING: 0.63, ATTENTION: 0.4}
    assert profile.confidence == pytest.approx(0.7)
    assert profile.degraded_reason == "needs model timed out after 5.0s"
    assert "timed out" in caplog.text


def test_missing_model_result_is_treated_as_degraded():
    profile = fuse([_rule({ATTENTION: 0.4})], None)

    assert profile.fallback_used is True


def test_plain_signal_list_is_accepted_as_model_result():
    profile = fuse([], [_model({ATTENTION: 0.4}, 0.9)])

    assert profile.fallback_used is False
    assert profile.confidence == pytest.approx(0.9)


def test_no_rule_signals_in_fallback_gives_empty_profile():
    profile = fuse([], ModelDegraded("down"))

    assert profile.scores == {}
    assert profile.confidence == 0.0


def test_cultural_signal_replaces_its_origin_score():
    rule = _rule({LOW_ENGAGEMENT: 0.6})
    cultural = NeedsSignal(
        scores={LOW_ENGAGEMENT: 0.42}, confidence=0.6, source=SOURCE_CULTURAL, origin=SOURCE_RULE
    )

    profile = fuse([rule], ModelDegraded("down"), [cultural])

    assert profile.scores[LOW_ENGAGEMENT] == pytest.approx(0.42)
    assert cultural in profile.signals
    assert rule in profile.signals


def test_model_origin_cultural_signals_are_dropped_in_fallback():
    cultural = NeedsSignal(
        scores={MATH_PROCESSING: 0.9}, confidence=0.9, source=SOURCE_CULTURAL, origin=SOURCE_MODEL
    )

    profile = fuse([_rule({ATTENTION: 0.3})], ModelDegraded("down"), [cultural])

    assert MATH_PROCESSING not in profile.scores
    assert cultural not in profile.signals


def test_severities_and_ranking():
    profile = fuse(
        [_rule({READING_PROCESSING: 0.75, ATTENTION: 0.5, MATH_PROCESSING: 0.1})],
        ModelDegraded("down"),
    )

    assert profile.severities() == {
        READING_PROCESSING: "severe",
        ATTENTION: "moderate",
        MATH_PROCESSING: "mild",
    }
    assert [label for label, _ in profile.ranked()] == [READING_PROCESSING, ATTENTION, MATH_PROCESSING]


def test_profile_round_trips_through_dict():
    profile = fuse([_rule({ATTENTION: 0.4})], ModelOk([_model({ATTENTION: 0.5})]))

    restored = type(profile).from_dict(profile.to_dict())

    assert restored.scores == profile.scores
    assert restored.signals == profile.signals
    assert restored.model_source == "hybrid"

from __future__ import annotations

import pytest

from triage_assistant.engine.urgency import (
    UrgencyEvaluator,
    pain_score_weight,
    stage_weight,
)
from triage_assistant.models.conversation import Conversation, Message
from triage_assistant.models.triage import MessageRole, Stage, UrgencyLevel
from triage_assistant.utils.red_flags import detect_red_flags, find_moderate_signals


@pytest.fixture
def evaluator() -> UrgencyEvaluator:
    return UrgencyEvaluator(medium_score=2.0, high_score=4.0)


def _conversation(stage_data=None, said=(), urgency=UrgencyLevel.LOW) -> Conversation:
    return Conversation(
        user_id="u1",
        stage_data=dict(stage_data or {}),
        urgency=urgency,
        messages=[Message(role=MessageRole.USER, content=text) for text in said],
    )


def test_no_signals_is_low(evaluator):
    conversation = _conversation({"initial": "estou com uma coceira leve"})

    assert evaluator.evaluate(conversation) is UrgencyLevel.LOW


def test_single_fever_mention_stays_low(evaluator):
    conversation = _conversation({"initial": "estou com febre há 3 dias"})

    assessment = evaluator.assess(conversation)

    assert assessment.level is UrgencyLevel.LOW
    assert assessment.signals == ["febre"]


def test_moderate_signals_accumulate_to_medium_and_high(evaluator):
    medium = _conversation({"initial": "febre e vômito"})
    high = _conversation(
        {"initial": "febre alta e vômito", "intensity": "9, insuportável"}
    )

    assert evaluator.evaluate(medium) is UrgencyLevel.MEDIUM
    assert evaluator.evaluate(high) is UrgencyLevel.HIGH


def test_later_stages_weigh_more():
    assert stage_weight(Stage.HISTORY) > stage_weight(Stage.DURATION) > stage_weight(
        Stage.INITIAL
    )


def test_same_signal_scores_higher_later_in_the_interview(evaluator):
    early = evaluator.assess(_conversation({"initial": "tontura"}))
    late = evaluator.assess(_conversation({"history": "tontura"}))

    assert late.score > early.score


@pytest.mark.parametrize(
    "answer, weight",
    [("10/10", 2.0), ("uns 8", 2.0), ("6 de 10", 1.0), ("3", 0.0), ("não sei", 0.0)],
)
def test_pain_score_weight(answer, weight):
    assert pain_score_weight(answer) == weight


def test_pain_score_only_counts_in_intensity_answers(evaluator):
    in_duration = evaluator.assess(_conversation({"duration": "9 dias"}))
    in_intensity = evaluator.assess(_conversation({"intensity": "9"}))

    assert in_duration.score == 0
    assert in_intensity.score > 0


def test_emergency_vocabulary_forces_emergency(evaluator):
    conversation = _conversation(said=["estou com dor no peito"])

    assessment = evaluator.assess(conversation)

    assert assessment.level is UrgencyLevel.EMERGENCY
    assert assessment.red_flags == ["cardiac_emergency"]


def test_emergency_detected_in_messages_outside_stage_answers(evaluator):
    conversation = _conversation(said=["agora estou com falta de ar"])

    assert evaluator.evaluate(conversation) is UrgencyLevel.EMERGENCY


def test_assistant_messages_are_not_scanned(evaluator):
    conversation = Conversation(
        user_id="u1",
        messages=[Message(role=MessageRole.ASSISTANT, content="Tem dor no peito?")],
    )

    assert evaluator.evaluate(conversation) is UrgencyLevel.LOW


def test_urgency_never_drops_below_recorded_level(evaluator):
    conversation = _conversation(urgency=UrgencyLevel.HIGH)

    assessment = evaluator.assess(conversation)

    assert assessment.computed is UrgencyLevel.LOW
    assert assessment.level is UrgencyLevel.HIGH


def test_emergency_is_sticky(evaluator):
    conversation = _conversation({"initial": "coceira"}, urgency=UrgencyLevel.EMERGENCY)

    assert evaluator.evaluate(conversation) is UrgencyLevel.EMERGENCY


def test_urgency_ordering():
    assert UrgencyLevel.highest(UrgencyLevel.MEDIUM, UrgencyLevel.LOW) is UrgencyLevel.MEDIUM
    assert UrgencyLevel.highest(UrgencyLevel.EMERGENCY, UrgencyLevel.HIGH) is (
        UrgencyLevel.EMERGENCY
    )


@pytest.mark.parametrize(
    "text, category",
    [
        ("Não consigo respirar", "respiratory_emergency"),
        ("desmaiei no banheiro", "neurological_emergency"),
        ("I have crushing chest pressure", "cardiac_emergency"),
        ("vomitando sangue desde ontem", "abdominal_emergency"),
    ],
)
def test_red_flag_categories(text, category):
    has_flags, categories = detect_red_flags(text)

    assert has_flags
    assert category in categories


def test_moderate_signal_prefix_terms():
    assert "vomit*" in find_moderate_signals("estou vomitando")
    assert find_moderate_signals("tudo bem") == []


@pytest.mark.parametrize(
    "text, expected",
    [
        ("febre alta desde ontem", ["febre alta"]),
        ("dor muito forte", ["muito forte"]),
        ("febre alta e agora febre de novo", ["febre alta", "febre"]),
    ],
)
def test_longer_signal_terms_are_not_counted_twice(text, expected):
    assert sorted(find_moderate_signals(text)) == sorted(expected)


def test_high_fever_scores_once(evaluator):
    assessment = evaluator.assess(_conversation({"initial": "febre alta"}))

    assert assessment.score == 2.0
    assert assessment.level is UrgencyLevel.MEDIUM

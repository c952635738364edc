"""Urgency evaluator.

Emergency vocabulary in anything the patient said forces ``emergency``.
Otherwise a weighted count of moderate signals over the recorded stage
answers picks ``low``/``medium``/``high``; answers given later in the
interview weigh more. The result never drops below the level already
recorded on the conversation.
"""

import logging
import re
from typing import List, Optional

from pydantic import BaseModel, Field

from triage_assistant.config.settings import settings
from triage_assistant.models.conversation import Conversation
from triage_assistant.models.triage import MessageRole, Stage, UrgencyLevel
from triage_assistant.utils.red_flags import (
    MODERATE_SIGNALS,
    detect_red_flags,
    find_moderate_signals,
)

logger = logging.getLogger(__name__)

_PAIN_SCORE = re.compile(r"\b(10|[0-9])\s*(?:/\s*10|de\s*10|out of 10)?\b")


class UrgencyAssessment(BaseModel):
    """Computed urgency and the evidence behind it."""

    level: UrgencyLevel
    computed: UrgencyLevel
    score: float = 0.0
    red_flags: List[str] = Field(default_factory=list)
    signals: List[str] = Field(default_factory=list)


def stage_weight(stage: Stage) -> float:
    """Multiplier for signals found in a stage's answer."""
    return 1.0 + 0.1 * stage.order


def pain_score_weight(text: str) -> float:
    """Weight contributed by a 0-10 pain score in an intensity answer."""
    match = _PAIN_SCORE.search(text)
    if not match:
        return 0.0
    score = int(match.group(1))
    if score >= 8:
        return 2.0
    if score >= 5:
        return 1.0
    return 0.0


class UrgencyEvaluator:
    """Sticky-max urgency policy."""

    def __init__(
        self,
        medium_score: Optional[float] = None,
        high_score: Optional[float] = None,
    ):
        self.medium_score = (
            settings.urgency_medium_score if medium_score is None else medium_score
        )
        self.high_score = settings.urgency_high_score if high_score is None else high_score

    def _level_for_score(self, score: float) -> UrgencyLevel:
        if score >= self.high_score:
            return UrgencyLevel.HIGH
        if score >= self.medium_score:
            return UrgencyLevel.MEDIUM
        return UrgencyLevel.LOW

    def assess(self, conversation: Conversation) -> UrgencyAssessment:
        red_flags: List[str] = []
        for message in conversation.messages:
            if message.role is not MessageRole.USER:
                continue
            _, categories = detect_red_flags(message.content)
            red_flags.extend(c for c in categories if c not in red_flags)

        score = 0.0
        signals: List[str] = []
        for stage_name, answer in conversation.stage_data.items():
            stage = Stage(stage_name)
            found = find_moderate_signals(answer)
            signals.extend(found)
            weight = sum(MODERATE_SIGNALS[term] for term in found)
            if stage is Stage.INTENSITY:
                weight += pain_score_weight(answer)
            score += weight * stage_weight(stage)

        if red_flags:
            computed = UrgencyLevel.EMERGENCY
        else:
            computed = self._level_for_score(score)

        level = UrgencyLevel.highest(conversation.urgency, computed)
        if level is not conversation.urgency:
            logger.info(
                f"Conversation {conversation.conversation_id}: urgency "
                f"{conversation.urgency.value} → {level.value} (score={score:.1f})"
            )
        return UrgencyAssessment(
            level=level,
            computed=computed,
            score=score,
            red_flags=red_flags,
            signals=signals,
        )

    def evaluate(self, conversation: Conversation) -> UrgencyLevel:
        return self.assess(conversation).level

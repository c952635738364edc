"""Interview stage tracker.

Walks a conversation through the fixed clinical interview protocol:

  initial → duration → intensity → quality → factors → history → analysis → complete

Each symptom turn records the message as the answer for the current stage and
moves exactly one stage forward. Scheduling requests never move the stage.
``analysis`` is left only through :meth:`StageTracker.complete`, once the
hypothesis generator has answered.
"""

import logging
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from triage_assistant.engine.errors import InvalidStageTransition
from triage_assistant.engine.prompts import (
    GENERAL_RESPONSE,
    SCHEDULING_RESPONSE,
    STAGE_LABELS,
    STAGE_PROMPTS,
)
from triage_assistant.models.conversation import Conversation
from triage_assistant.models.triage import ConversationStatus, Intent, Stage

logger = logging.getLogger(__name__)


class TurnBranch(str, Enum):
    """Which path a turn took through the tracker."""

    INTERVIEW = "interview"
    SCHEDULING = "scheduling"
    GENERAL = "general"
    ANALYSIS = "analysis"
    COMPLETED = "completed"


class StageTransition(BaseModel):
    """Outcome of one tracker step. Apply it with :meth:`StageTracker.apply`."""

    previous: Stage
    stage: Stage
    prompt: str
    branch: TurnBranch
    recorded_stage: Optional[Stage] = None
    datum: Optional[str] = None

    @property
    def advanced(self) -> bool:
        return self.stage is not self.previous

    @property
    def needs_analysis(self) -> bool:
        return self.branch is TurnBranch.ANALYSIS


class StageTracker:
    """Deterministic state machine over :class:`Stage`."""

    def advance(
        self, conversation: Conversation, intent: Intent, text: str
    ) -> StageTransition:
        """Compute the next stage and follow-up prompt for a turn.

        Raises:
            InvalidStageTransition: the conversation already reached ``complete``
        """
        stage = conversation.stage
        if conversation.is_complete or stage is Stage.COMPLETE:
            raise InvalidStageTransition(
                f"Conversation {conversation.conversation_id} is already complete"
            )

        if intent is Intent.SCHEDULING_REQUEST:
            return StageTransition(
                previous=stage,
                stage=stage,
                prompt=SCHEDULING_RESPONSE,
                branch=TurnBranch.SCHEDULING,
            )

        # Hypotheses still pending from an earlier turn: retry generation
        if stage is Stage.ANALYSIS:
            return StageTransition(
                previous=stage,
                stage=stage,
                prompt=STAGE_PROMPTS[Stage.ANALYSIS],
                branch=TurnBranch.ANALYSIS,
            )

        if intent is Intent.GENERAL_QUESTION and stage is Stage.INITIAL:
            return StageTransition(
                previous=stage,
                stage=stage,
                prompt=GENERAL_RESPONSE,
                branch=TurnBranch.GENERAL,
            )

        # Symptom report, or the answer to the question pending for this stage
        next_stage = stage.next()
        return StageTransition(
            previous=stage,
            stage=next_stage,
            prompt=STAGE_PROMPTS[next_stage],
            branch=(
                TurnBranch.ANALYSIS
                if next_stage is Stage.ANALYSIS
                else TurnBranch.INTERVIEW
            ),
            recorded_stage=stage,
            datum=text,
        )

    def complete(self, conversation: Conversation) -> StageTransition:
        """Close the interview after the analysis turn has been processed."""
        if conversation.stage is not Stage.ANALYSIS:
            raise InvalidStageTransition(
                f"Cannot complete conversation {conversation.conversation_id} "
                f"from stage {conversation.stage.value}"
            )
        return StageTransition(
            previous=Stage.ANALYSIS,
            stage=Stage.COMPLETE,
            prompt=STAGE_PROMPTS[Stage.COMPLETE],
            branch=TurnBranch.COMPLETED,
        )

    def apply(self, conversation: Conversation, transition: StageTransition) -> None:
        """Write a transition into ``conversation``. Stages never move backwards."""
        if transition.stage.order < conversation.stage.order:
            raise InvalidStageTransition(
                f"Stage cannot regress from {conversation.stage.value} "
                f"to {transition.stage.value}"
            )

        if transition.recorded_stage is not None:
            conversation.stage_data[transition.recorded_stage.value] = transition.datum

        if transition.advanced:
            logger.info(
                f"Conversation {conversation.conversation_id}: "
                f"{transition.previous.value} → {transition.stage.value}"
            )
        conversation.stage = transition.stage

        if transition.stage is Stage.COMPLETE:
            conversation.is_complete = True
            conversation.status = ConversationStatus.COMPLETED


def build_symptom_summary(conversation: Conversation) -> str:
    """Render the recorded stage answers as the summary sent to the generator."""
    lines = []
    for stage, label in STAGE_LABELS.items():
        answer = conversation.stage_data.get(stage.value)
        if answer:
            lines.append(f"{label}: {answer}")
    return "\n".join(lines)

"""Triage engine: one chatbot turn from message to committed conversation.

Turn pipeline:

  load conversation (by id, or latest for the user)
      │
      ▼
  classify intent ─▶ advance stage ─▶ evaluate urgency
      │
      ▼ (stage reached analysis)
  hypothesis generator ─▶ complete interview
      │
      ▼
  save conversation (single commit)

All mutation happens on a copy of the loaded conversation. If anything fails
or the request is cancelled before ``save`` returns, the stored conversation
is exactly what it was before the turn, so retrying is safe.
"""

import logging
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from triage_assistant.config.settings import settings
from triage_assistant.engine.classifier import MessageClassifier
from triage_assistant.engine.errors import (
    ConversationNotFound,
    HypothesisGeneratorUnavailable,
    InvalidStageTransition,
)
from triage_assistant.engine.prompts import (
    ANALYSIS_DISCLAIMER,
    ANALYSIS_UNAVAILABLE,
    EMERGENCY_ADVISORY,
    FALLBACK_RESPONSE,
    STAGE_PROMPTS,
)
from triage_assistant.engine.stage_tracker import (
    StageTracker,
    StageTransition,
    TurnBranch,
    build_symptom_summary,
)
from triage_assistant.engine.urgency import UrgencyEvaluator
from triage_assistant.models.conversation import (
    Conversation,
    DiagnosticHypothesis,
    Message,
    MessageMetadata,
)
from triage_assistant.models.triage import Intent, MessageRole, Stage, UrgencyLevel
from triage_assistant.services.conversation_store import (
    ConversationStore,
    get_conversation_store,
)
from triage_assistant.services.hypothesis_service import (
    HypothesisGenerator,
    get_hypothesis_generator,
)
from triage_assistant.services.turn_lock import TurnLockRegistry

logger = logging.getLogger(__name__)


class TurnResult(BaseModel):
    """What the caller gets back for one message."""

    conversation_id: str
    response: str
    intent: Intent
    stage: Stage
    urgency: UrgencyLevel
    is_complete: bool
    urgent_flag: bool = False
    hypotheses: Optional[List[DiagnosticHypothesis]] = None
    suggested_action: Optional[str] = None
    replayed: bool = False


def format_hypotheses(hypotheses: List[DiagnosticHypothesis]) -> str:
    lines = ["Com base nas informações relatadas, estas são as hipóteses mais prováveis:"]
    for index, hypothesis in enumerate(hypotheses, start=1):
        line = f"{index}. {hypothesis.condition} ({hypothesis.probability:.0f}%)"
        if hypothesis.reasoning:
            line += f": {hypothesis.reasoning}"
        lines.append(line)
    lines.append("")
    lines.append(ANALYSIS_DISCLAIMER)
    return "\n".join(lines)


def _suggested_action(branch: TurnBranch, urgency: UrgencyLevel) -> Optional[str]:
    if urgency is UrgencyLevel.EMERGENCY:
        return "emergency_care"
    if branch in (TurnBranch.SCHEDULING, TurnBranch.COMPLETED):
        return "schedule"
    return None


class TriageEngine:
    """Processes chatbot turns against the Conversation Store."""

    def __init__(
        self,
        store: ConversationStore,
        hypothesis_generator: HypothesisGenerator,
        classifier: Optional[MessageClassifier] = None,
        tracker: Optional[StageTracker] = None,
        urgency_evaluator: Optional[UrgencyEvaluator] = None,
        locks: Optional[TurnLockRegistry] = None,
    ):
        self.store = store
        self.hypothesis_generator = hypothesis_generator
        self.classifier = classifier or MessageClassifier()
        self.tracker = tracker or StageTracker()
        self.urgency_evaluator = urgency_evaluator or UrgencyEvaluator()
        self.locks = locks or TurnLockRegistry()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def process_message(
        self,
        user_id: str,
        text: str,
        conversation_id: Optional[str] = None,
        message_id: Optional[str] = None,
    ) -> TurnResult:
        """
        Run one turn for ``user_id`` and commit it.

        Args:
            user_id: Owner of the conversation
            text: Raw message text
            conversation_id: Conversation the client believes is active
            message_id: Client idempotency key

        Returns:
            TurnResult for the committed turn (or the replayed one)

        Raises:
            ConversationNotFound: conversation_id is unknown or not owned by the user
            ConversationBusy: another turn for this user did not finish in time
            PersistenceFailure: the turn could not be committed
        """
        text = text.strip()[: settings.max_message_chars]

        async with self.locks.hold(user_id):
            named = await self._named_conversation(user_id, conversation_id)
            conversation = await self._resolve_conversation(user_id, named)

            if message_id:
                replay = await self._find_replay(named, conversation, message_id)
                if replay is not None:
                    logger.info(
                        f"Replaying committed turn {message_id} of conversation "
                        f"{replay.conversation_id}"
                    )
                    return replay

            if conversation is None or conversation.is_complete:
                conversation = Conversation(
                    user_id=user_id,
                    previous_conversation_id=(
                        conversation.conversation_id if conversation else None
                    ),
                )
                logger.info(
                    f"Started conversation {conversation.conversation_id} for user {user_id}"
                )

            working = conversation.model_copy(deep=True)
            result = await self._run_turn(working, text, message_id)
            await self.store.save(working)
            return result

    async def current_conversation(self, user_id: str) -> Optional[Conversation]:
        return await self.store.load(user_id)

    async def clear(self, user_id: str) -> Optional[Conversation]:
        """Terminate the user's active conversation (chat reset)."""
        async with self.locks.hold(user_id):
            return await self.store.clear(user_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _named_conversation(
        self, user_id: str, conversation_id: Optional[str]
    ) -> Optional[Conversation]:
        if not conversation_id:
            return None

        conversation = await self.store.get(conversation_id)
        if conversation is None or conversation.user_id != user_id:
            raise ConversationNotFound(conversation_id)
        return conversation

    async def _resolve_conversation(
        self, user_id: str, named: Optional[Conversation]
    ) -> Optional[Conversation]:
        """The conversation this turn continues (None or finished means start anew)."""
        if named is None:
            return await self.store.load(user_id)

        if named.is_complete:
            # A finished conversation may already have a successor
            latest = await self.store.load(user_id)
            if latest is not None and not latest.is_complete:
                return latest
        return named

    async def _find_replay(
        self,
        named: Optional[Conversation],
        conversation: Optional[Conversation],
        message_id: str,
    ) -> Optional[TurnResult]:
        """Look for ``message_id`` in the named conversation, the one being
        continued and the finished conversation that one replaced."""
        candidates = [named, conversation]
        for candidate in candidates:
            if candidate is None:
                continue
            replay = self._replay(candidate, message_id)
            if replay is not None:
                return replay

        previous_id = conversation.previous_conversation_id if conversation else None
        if not previous_id or (named is not None and named.conversation_id == previous_id):
            return None
        previous = await self.store.get(previous_id)
        if previous is None or previous.user_id != conversation.user_id:
            return None
        return self._replay(previous, message_id)

    @staticmethod
    def _replay(conversation: Conversation, message_id: str) -> Optional[TurnResult]:
        committed = conversation.find_committed_turn(message_id)
        if committed is None:
            return None

        user_message, reply = committed
        stage = reply.metadata.stage or conversation.stage
        return TurnResult(
            conversation_id=conversation.conversation_id,
            response=reply.content,
            intent=user_message.metadata.intent or Intent.GENERAL_QUESTION,
            stage=stage,
            urgency=reply.metadata.urgency or conversation.urgency,
            is_complete=stage is Stage.COMPLETE,
            urgent_flag=reply.metadata.urgent_flag,
            hypotheses=reply.metadata.hypotheses or None,
            suggested_action=reply.metadata.suggested_action,
            replayed=True,
        )

    async def _run_turn(
        self, conversation: Conversation, text: str, message_id: Optional[str]
    ) -> TurnResult:
        intent = self.classifier.classify(text)
        logger.info(
            f"Conversation {conversation.conversation_id}: intent={intent.value} "
            f"stage={conversation.stage.value}"
        )

        conversation.messages.append(
            Message(
                role=MessageRole.USER,
                content=text,
                metadata=MessageMetadata(
                    stage=conversation.stage,
                    urgency=conversation.urgency,
                    intent=intent,
                    message_id=message_id,
                ),
            )
        )

        try:
            transition = self.tracker.advance(conversation, intent, text)
        except InvalidStageTransition as e:
            logger.warning(f"Ignoring turn on finished conversation: {e}")
            transition = StageTransition(
                previous=conversation.stage,
                stage=conversation.stage,
                prompt=STAGE_PROMPTS[Stage.COMPLETE],
                branch=TurnBranch.COMPLETED,
            )
        self.tracker.apply(conversation, transition)

        assessment = self.urgency_evaluator.assess(conversation)
        conversation.urgency = assessment.level

        urgent_flag = (
            conversation.urgency is UrgencyLevel.EMERGENCY
            and not conversation.urgent_flag_emitted
        )
        if urgent_flag:
            conversation.urgent_flag_emitted = True
            logger.warning(
                f"🚨 Conversation {conversation.conversation_id} escalated to emergency: "
                f"{', '.join(assessment.red_flags)}"
            )

        response = transition.prompt
        branch = transition.branch
        hypotheses = None

        if transition.needs_analysis:
            try:
                hypotheses = await self._generate_hypotheses(conversation)
            except HypothesisGeneratorUnavailable as e:
                logger.warning(
                    f"Hypotheses unavailable for conversation "
                    f"{conversation.conversation_id}: {e}"
                )
                response = ANALYSIS_UNAVAILABLE
            except Exception as e:
                logger.error(
                    f"Hypothesis generation failed for conversation "
                    f"{conversation.conversation_id}: {e}",
                    exc_info=True,
                )
                response = FALLBACK_RESPONSE
            else:
                self.tracker.apply(conversation, self.tracker.complete(conversation))
                response = format_hypotheses(hypotheses)
                branch = TurnBranch.COMPLETED

        if urgent_flag:
            response = f"{EMERGENCY_ADVISORY}\n\n{response}"

        suggested_action = _suggested_action(branch, conversation.urgency)
        conversation.messages.append(
            Message(
                role=MessageRole.ASSISTANT,
                content=response,
                metadata=MessageMetadata(
                    stage=conversation.stage,
                    urgency=conversation.urgency,
                    intent=intent,
                    hypotheses=hypotheses or [],
                    urgent_flag=urgent_flag,
                    suggested_action=suggested_action,
                ),
            )
        )
        conversation.last_activity = datetime.utcnow()

        return TurnResult(
            conversation_id=conversation.conversation_id,
            response=response,
            intent=intent,
            stage=conversation.stage,
            urgency=conversation.urgency,
            is_complete=conversation.is_complete,
            urgent_flag=urgent_flag,
            hypotheses=hypotheses,
            suggested_action=suggested_action,
        )

    async def _generate_hypotheses(
        self, conversation: Conversation
    ) -> List[DiagnosticHypothesis]:
        summary = build_symptom_summary(conversation)
        hypotheses = await self.hypothesis_generator.generate(summary)

        # Replaces any earlier list; results are never merged
        conversation.hypotheses = list(hypotheses)
        return conversation.hypotheses


# Global engine instance
_triage_engine: Optional[TriageEngine] = None


def get_triage_engine() -> TriageEngine:
    """Get or create the TriageEngine instance."""
    global _triage_engine
    if _triage_engine is None:
        _triage_engine = TriageEngine(
            store=get_conversation_store(),
            hypothesis_generator=get_hypothesis_generator(),
        )
    return _triage_engine

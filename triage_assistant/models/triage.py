"""Triage enums: intents, interview stages and urgency levels."""

from enum import Enum


class Intent(str, Enum):
    """What an incoming utterance is asking for."""

    SYMPTOM_REPORT = "symptom_report"
    SCHEDULING_REQUEST = "scheduling_request"
    GENERAL_QUESTION = "general_question"


class Stage(str, Enum):
    """Clinical interview stages, in protocol order."""

    INITIAL = "initial"
    DURATION = "duration"
    INTENSITY = "intensity"
    QUALITY = "quality"
    FACTORS = "factors"
    HISTORY = "history"
    ANALYSIS = "analysis"
    COMPLETE = "complete"

    @property
    def order(self) -> int:
        return _STAGE_ORDER.index(self)

    def next(self) -> "Stage":
        """The stage that follows this one. COMPLETE has no successor."""
        if self is Stage.COMPLETE:
            raise ValueError("complete is a terminal stage")
        return _STAGE_ORDER[self.order + 1]


_STAGE_ORDER = list(Stage)


class UrgencyLevel(str, Enum):
    """Triage urgency levels, lowest first."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EMERGENCY = "emergency"

    @property
    def order(self) -> int:
        return _URGENCY_ORDER.index(self)

    @classmethod
    def highest(cls, *levels: "UrgencyLevel") -> "UrgencyLevel":
        return max(levels, key=lambda level: level.order)


_URGENCY_ORDER = list(UrgencyLevel)


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ConversationStatus(str, Enum):
    """Conversation lifecycle status."""

    ACTIVE = "active"
    COMPLETED = "completed"
    CLEARED = "cleared"

"""Conversation schema stored by the Conversation Store."""

from pydantic import BaseModel, Field
from typing import Dict, List, Optional, Tuple
from datetime import datetime
from triage_assistant.models.triage import (
    ConversationStatus,
    Intent,
    MessageRole,
    Stage,
    UrgencyLevel,
)
import uuid


class DiagnosticHypothesis(BaseModel):
    """A candidate diagnosis proposed by the reasoning service."""

    condition: str
    probability: float = Field(..., ge=0, le=100)
    reasoning: str = ""
    ministry_guidelines: Optional[str] = None


class MessageMetadata(BaseModel):
    """Triage state captured when a message was sent."""

    stage: Optional[Stage] = None
    urgency: Optional[UrgencyLevel] = None
    intent: Optional[Intent] = None
    hypotheses: List[DiagnosticHypothesis] = Field(default_factory=list)
    urgent_flag: bool = False
    message_id: Optional[str] = None  # client idempotency key (user messages)
    suggested_action: Optional[str] = None

    class Config:
        frozen = True


class Message(BaseModel):
    """Individual message in a conversation. Immutable once appended."""

    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    metadata: MessageMetadata = Field(default_factory=MessageMetadata)

    class Config:
        frozen = True


class Conversation(BaseModel):
    """One clinical-triage chat session between a user and the assistant."""

    conversation_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    status: ConversationStatus = ConversationStatus.ACTIVE
    created_at: datetime = Field(default_factory=datetime.utcnow)
    last_activity: datetime = Field(default_factory=datetime.utcnow)

    messages: List[Message] = Field(default_factory=list)

    # Interview state
    stage: Stage = Stage.INITIAL
    urgency: UrgencyLevel = UrgencyLevel.LOW
    is_complete: bool = False
    urgent_flag_emitted: bool = False
    stage_data: Dict[str, str] = Field(default_factory=dict)
    hypotheses: List[DiagnosticHypothesis] = Field(default_factory=list)

    # Finished conversation this one took over from, if any
    previous_conversation_id: Optional[str] = None

    # Optimistic concurrency counter, bumped by every successful save
    version: int = 0

    class Config:
        json_schema_extra = {
            "example": {
                "conversation_id": "123e4567-e89b-12d3-a456-426614174000",
                "user_id": "user123",
                "status": "active",
                "stage": "intensity",
                "urgency": "medium",
                "stage_data": {
                    "initial": "estou com febre",
                    "duration": "há 3 dias",
                },
            }
        }

    def find_committed_turn(self, message_id: str) -> Optional[Tuple[Message, Message]]:
        """Return the (user, assistant) pair committed for a client message id."""
        for index, message in enumerate(self.messages[:-1]):
            if (
                message.role is MessageRole.USER
                and message.metadata.message_id == message_id
            ):
                reply = self.messages[index + 1]
                if reply.role is MessageRole.ASSISTANT:
                    return message, reply
        return None

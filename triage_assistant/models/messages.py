"""API request and response models.

The chatbot widget speaks camelCase, so wire names are declared as aliases
and the models accept either spelling on input.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime
from triage_assistant.models.conversation import DiagnosticHypothesis
from triage_assistant.models.triage import (
    ConversationStatus,
    Intent,
    MessageRole,
    Stage,
    UrgencyLevel,
)


class ChatMessageRequest(BaseModel):
    """Request to send a message to the triage assistant."""

    model_config = ConfigDict(populate_by_name=True)

    text: str = Field(
        ..., alias="message", min_length=1, description="User message"
    )
    conversation_id: Optional[str] = Field(
        None, alias="conversationId", description="Conversation the message belongs to"
    )
    message_id: Optional[str] = Field(
        None,
        alias="messageId",
        max_length=128,
        description="Client idempotency key; a replayed id returns the committed reply",
    )


class HypothesisModel(BaseModel):
    """Diagnostic hypothesis as shown to the patient."""

    model_config = ConfigDict(populate_by_name=True)

    condition: str
    probability: float
    reasoning: str
    ministry_guidelines: Optional[str] = Field(None, alias="ministryGuidelines")

    @classmethod
    def from_hypothesis(cls, hypothesis: DiagnosticHypothesis) -> "HypothesisModel":
        return cls(
            condition=hypothesis.condition,
            probability=hypothesis.probability,
            reasoning=hypothesis.reasoning,
            ministry_guidelines=hypothesis.ministry_guidelines,
        )


class ResponseMetadata(BaseModel):
    """Triage state attached to every assistant reply."""

    model_config = ConfigDict(populate_by_name=True)

    conversation_id: str = Field(..., alias="conversationId")
    intent: Intent
    interview_stage: Stage = Field(..., alias="interviewStage")
    urgency_level: UrgencyLevel = Field(..., alias="urgencyLevel")
    is_complete: bool = Field(..., alias="isComplete")
    urgent_flag: bool = Field(False, alias="urgentFlag")
    diagnostic_hypotheses: Optional[List[HypothesisModel]] = Field(
        None, alias="diagnosticHypotheses"
    )
    suggested_action: Optional[str] = Field(None, alias="suggestedAction")
    replayed: bool = False


class ChatMessageResponse(BaseModel):
    """Reply to a chat message."""

    response: str
    metadata: ResponseMetadata


class MessageModel(BaseModel):
    """Individual message in conversation."""

    role: MessageRole
    content: str
    timestamp: datetime


class ConversationDetailsResponse(BaseModel):
    """Full conversation details response."""

    model_config = ConfigDict(populate_by_name=True)

    conversation_id: str = Field(..., alias="conversationId")
    status: ConversationStatus
    interview_stage: Stage = Field(..., alias="interviewStage")
    urgency_level: UrgencyLevel = Field(..., alias="urgencyLevel")
    is_complete: bool = Field(..., alias="isComplete")
    created_at: datetime = Field(..., alias="createdAt")
    last_activity: datetime = Field(..., alias="lastActivity")
    messages: List[MessageModel]
    diagnostic_hypotheses: List[HypothesisModel] = Field(
        default_factory=list, alias="diagnosticHypotheses"
    )


class ClearConversationResponse(BaseModel):
    """Response after the user clears the chat."""

    model_config = ConfigDict(populate_by_name=True)

    cleared: bool
    conversation_id: Optional[str] = Field(None, alias="conversationId")

"""Chatbot API endpoints.

The floating chatbot widget talks to a single message endpoint. Each message
is one turn of the clinical triage interview: it is classified, moves the
interview stage, re-evaluates urgency and, once the interview reaches the
analysis stage, asks the reasoning service for diagnostic hypotheses.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from triage_assistant.api.dependencies import get_current_user, get_engine
from triage_assistant.engine.errors import (
    ConversationBusy,
    ConversationConflict,
    ConversationNotFound,
    PersistenceFailure,
)
from triage_assistant.engine.triage_engine import TriageEngine, TurnResult
from triage_assistant.models.conversation import Conversation
from triage_assistant.models.messages import (
    ChatMessageRequest,
    ChatMessageResponse,
    ClearConversationResponse,
    ConversationDetailsResponse,
    HypothesisModel,
    MessageModel,
    ResponseMetadata,
)
from typing import Dict
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chatbot", tags=["Chatbot"])


def _to_response(result: TurnResult) -> ChatMessageResponse:
    hypotheses = None
    if result.hypotheses is not None:
        hypotheses = [HypothesisModel.from_hypothesis(h) for h in result.hypotheses]

    return ChatMessageResponse(
        response=result.response,
        metadata=ResponseMetadata(
            conversation_id=result.conversation_id,
            intent=result.intent,
            interview_stage=result.stage,
            urgency_level=result.urgency,
            is_complete=result.is_complete,
            urgent_flag=result.urgent_flag,
            diagnostic_hypotheses=hypotheses,
            suggested_action=result.suggested_action,
            replayed=result.replayed,
        ),
    )


def _to_details(conversation: Conversation) -> ConversationDetailsResponse:
    return ConversationDetailsResponse(
        conversation_id=conversation.conversation_id,
        status=conversation.status,
        interview_stage=conversation.stage,
        urgency_level=conversation.urgency,
        is_complete=conversation.is_complete,
        created_at=conversation.created_at,
        last_activity=conversation.last_activity,
        messages=[
            MessageModel(role=m.role, content=m.content, timestamp=m.timestamp)
            for m in conversation.messages
        ],
        diagnostic_hypotheses=[
            HypothesisModel.from_hypothesis(h) for h in conversation.hypotheses
        ],
    )


@router.post(
    "/message",
    response_model=ChatMessageResponse,
    response_model_exclude_none=True,
)
async def send_message(
    request: ChatMessageRequest,
    current_user: Dict[str, str] = Depends(get_current_user),
    engine: TriageEngine = Depends(get_engine),
):
    """
    Send a message to the triage assistant.

    Requires JWT authentication. The conversation is looked up by the
    authenticated user unless `conversationId` is given. Resending a request
    with the same `messageId` returns the committed reply without running
    the turn again.
    """
    if not request.text.strip():
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Message must not be blank",
        )

    try:
        result = await engine.process_message(
            user_id=current_user["userId"],
            text=request.text,
            conversation_id=request.conversation_id,
            message_id=request.message_id,
        )
    except ConversationNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found"
        )
    except (ConversationBusy, ConversationConflict):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A previous message is still being processed. Please try again.",
        )
    except PersistenceFailure as e:
        logger.error(f"Failed to commit turn for user {current_user['userId']}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Não foi possível salvar sua mensagem. Tente novamente em instantes.",
        )

    return _to_response(result)


@router.get(
    "/conversation",
    response_model=ConversationDetailsResponse,
)
async def get_conversation(
    current_user: Dict[str, str] = Depends(get_current_user),
    engine: TriageEngine = Depends(get_engine),
):
    """Return the user's current (most recent) conversation."""
    try:
        conversation = await engine.current_conversation(current_user["userId"])
    except PersistenceFailure as e:
        logger.error(f"Failed to load conversation: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Conversation store unavailable",
        )

    if conversation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No conversation yet"
        )
    return _to_details(conversation)


@router.delete(
    "/conversation",
    response_model=ClearConversationResponse,
)
async def clear_conversation(
    current_user: Dict[str, str] = Depends(get_current_user),
    engine: TriageEngine = Depends(get_engine),
):
    """Clear the chat: the active conversation ends and the next message starts a new one."""
    try:
        cleared = await engine.clear(current_user["userId"])
    except ConversationBusy:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A message is still being processed. Please try again.",
        )
    except PersistenceFailure as e:
        logger.error(f"Failed to clear conversation: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Conversation store unavailable",
        )

    return ClearConversationResponse(
        cleared=cleared is not None,
        conversation_id=cleared.conversation_id if cleared else None,
    )

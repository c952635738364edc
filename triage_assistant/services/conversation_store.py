"""Conversation Store: the durability boundary for triage conversations.

Every store applies the same optimistic version check: ``save`` only succeeds
when the stored version equals the one the conversation was loaded with, and
bumps it by one. A stale save raises :class:`ConversationConflict`.
"""

from triage_assistant.config.database import get_conversations_collection
from triage_assistant.config.settings import settings
from triage_assistant.engine.errors import (
    ConversationConflict,
    ConversationNotFound,
    PersistenceFailure,
)
from triage_assistant.models.conversation import Conversation, Message
from triage_assistant.models.triage import ConversationStatus
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError
from typing import Dict, Optional, Protocol
from datetime import datetime
import logging

logger = logging.getLogger(__name__)


class ConversationStore(Protocol):
    """Persistence contract consumed by the triage engine."""

    async def load(self, user_id: str) -> Optional[Conversation]:
        """Most recent conversation of a user, finished or not."""
        ...

    async def get(self, conversation_id: str) -> Optional[Conversation]:
        ...

    async def append(self, conversation_id: str, message: Message) -> None:
        ...

    async def save(self, conversation: Conversation) -> None:
        ...

    async def clear(self, user_id: str) -> Optional[Conversation]:
        """Terminate the user's active conversation, if any."""
        ...


def _mark_cleared(conversation: Conversation) -> Conversation:
    cleared = conversation.model_copy(deep=True)
    cleared.is_complete = True
    cleared.status = ConversationStatus.CLEARED
    cleared.last_activity = datetime.utcnow()
    return cleared


class MongoConversationStore:
    """Conversation store backed by a MongoDB collection (motor)."""

    def __init__(self, collection=None):
        self._collection = collection

    @property
    def collection(self):
        if self._collection is None:
            self._collection = get_conversations_collection()
        return self._collection

    async def load(self, user_id: str) -> Optional[Conversation]:
        try:
            doc = await self.collection.find_one(
                {"user_id": user_id}, sort=[("last_activity", DESCENDING)]
            )
        except PyMongoError as e:
            raise PersistenceFailure(f"Failed to load conversation: {e}") from e

        if doc:
            return Conversation(**doc)
        return None

    async def get(self, conversation_id: str) -> Optional[Conversation]:
        try:
            doc = await self.collection.find_one({"conversation_id": conversation_id})
        except PyMongoError as e:
            raise PersistenceFailure(f"Failed to load conversation: {e}") from e

        if doc:
            return Conversation(**doc)
        return None

    async def append(self, conversation_id: str, message: Message) -> None:
        try:
            result = await self.collection.update_one(
                {"conversation_id": conversation_id},
                {
                    "$push": {"messages": message.model_dump()},
                    "$inc": {"version": 1},
                    "$set": {"last_activity": datetime.utcnow()},
                },
            )
        except PyMongoError as e:
            raise PersistenceFailure(f"Failed to append message: {e}") from e

        if result.matched_count == 0:
            raise ConversationNotFound(conversation_id)

    async def save(self, conversation: Conversation) -> None:
        expected = conversation.version
        doc = conversation.model_dump()
        doc["version"] = expected + 1

        try:
            if expected == 0:
                await self.collection.insert_one(doc)
            else:
                result = await self.collection.update_one(
                    {"conversation_id": conversation.conversation_id, "version": expected},
                    {"$set": doc},
                )
                if result.matched_count == 0:
                    raise ConversationConflict(
                        f"Conversation {conversation.conversation_id} changed since version {expected}"
                    )
        except DuplicateKeyError as e:
            raise ConversationConflict(
                f"Conversation {conversation.conversation_id} already exists"
            ) from e
        except PyMongoError as e:
            raise PersistenceFailure(f"Failed to save conversation: {e}") from e

        conversation.version = expected + 1
        logger.info(
            f"Saved conversation {conversation.conversation_id} (version {conversation.version})"
        )

    async def clear(self, user_id: str) -> Optional[Conversation]:
        conversation = await self.load(user_id)
        if conversation is None or conversation.is_complete:
            return None

        cleared = _mark_cleared(conversation)
        await self.save(cleared)
        logger.info(f"Cleared conversation {cleared.conversation_id} for user {user_id}")
        return cleared


class InMemoryConversationStore:
    """Process-local conversation store for development and tests.

    Stored conversations are copied on the way in and out, so callers never
    hold a reference to the stored state.
    """

    def __init__(self):
        self._conversations: Dict[str, Conversation] = {}

    async def load(self, user_id: str) -> Optional[Conversation]:
        owned = [c for c in self._conversations.values() if c.user_id == user_id]
        if not owned:
            return None
        latest = max(owned, key=lambda c: c.last_activity)
        return latest.model_copy(deep=True)

    async def get(self, conversation_id: str) -> Optional[Conversation]:
        conversation = self._conversations.get(conversation_id)
        return conversation.model_copy(deep=True) if conversation else None

    async def append(self, conversation_id: str, message: Message) -> None:
        stored = self._conversations.get(conversation_id)
        if stored is None:
            raise ConversationNotFound(conversation_id)
        stored.messages.append(message)
        stored.last_activity = datetime.utcnow()
        stored.version += 1

    async def save(self, conversation: Conversation) -> None:
        expected = conversation.version
        stored = self._conversations.get(conversation.conversation_id)
        current = stored.version if stored else 0
        if current != expected:
            raise ConversationConflict(
                f"Conversation {conversation.conversation_id} changed since version {expected}"
            )

        conversation.version = expected + 1
        self._conversations[conversation.conversation_id] = conversation.model_copy(
            deep=True
        )

    async def clear(self, user_id: str) -> Optional[Conversation]:
        conversation = await self.load(user_id)
        if conversation is None or conversation.is_complete:
            return None

        cleared = _mark_cleared(conversation)
        await self.save(cleared)
        logger.info(f"Cleared conversation {cleared.conversation_id} for user {user_id}")
        return cleared


# Global store instance
_conversation_store: Optional[ConversationStore] = None


def get_conversation_store() -> ConversationStore:
    """Get or create the configured ConversationStore instance."""
    global _conversation_store
    if _conversation_store is None:
        if settings.conversation_store_backend == "memory":
            _conversation_store = InMemoryConversationStore()
        else:
            _conversation_store = MongoConversationStore()
        logger.info(f"Using {type(_conversation_store).__name__}")
    return _conversation_store

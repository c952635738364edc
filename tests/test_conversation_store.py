from __future__ import annotations

import pytest

from conftest import run
from triage_assistant.engine.errors import ConversationConflict, ConversationNotFound
from triage_assistant.models.conversation import Conversation, Message
from triage_assistant.models.triage import ConversationStatus, MessageRole, Stage


def test_save_and_get_round_trip(store):
    conversation = Conversation(user_id="u1", stage=Stage.QUALITY)

    run(store.save(conversation))
    loaded = run(store.get(conversation.conversation_id))

    assert conversation.version == 1
    assert loaded == conversation


def test_loaded_conversation_is_a_copy(store):
    conversation = Conversation(user_id="u1")
    run(store.save(conversation))

    loaded = run(store.load("u1"))
    loaded.stage = Stage.HISTORY

    assert run(store.load("u1")).stage is Stage.INITIAL


def test_load_returns_most_recent_conversation(store):
    older = Conversation(user_id="u1", is_complete=True)
    run(store.save(older))
    newer = Conversation(user_id="u1")
    run(store.save(newer))
    run(store.save(Conversation(user_id="u2")))

    assert run(store.load("u1")).conversation_id == newer.conversation_id
    assert run(store.load("nobody")) is None


def test_stale_save_conflicts(store):
    conversation = Conversation(user_id="u1")
    run(store.save(conversation))
    first = run(store.get(conversation.conversation_id))
    second = run(store.get(conversation.conversation_id))

    run(store.save(first))
    with pytest.raises(ConversationConflict):
        run(store.save(second))


def test_append_adds_message_and_bumps_version(store):
    conversation = Conversation(user_id="u1")
    run(store.save(conversation))

    run(store.append(conversation.conversation_id, Message(role=MessageRole.USER, content="oi")))

    stored = run(store.get(conversation.conversation_id))
    assert [m.content for m in stored.messages] == ["oi"]
    assert stored.version == 2
    with pytest.raises(ConversationConflict):
        run(store.save(conversation))


def test_append_to_unknown_conversation(store):
    with pytest.raises(ConversationNotFound):
        run(store.append("missing", Message(role=MessageRole.USER, content="oi")))


def test_clear_marks_active_conversation(store):
    conversation = Conversation(user_id="u1", stage=Stage.DURATION)
    run(store.save(conversation))

    cleared = run(store.clear("u1"))

    stored = run(store.get(conversation.conversation_id))
    assert cleared.conversation_id == conversation.conversation_id
    assert stored.is_complete
    assert stored.status is ConversationStatus.CLEARED
    assert stored.stage is Stage.DURATION
    assert run(store.clear("u1")) is None


def test_messages_are_immutable():
    message = Message(role=MessageRole.USER, content="oi")

    with pytest.raises(Exception):
        message.content = "tchau"


def test_find_committed_turn():
    conversation = Conversation(
        user_id="u1",
        messages=[
            Message(role=MessageRole.USER, content="oi", metadata={"message_id": "a"}),
            Message(role=MessageRole.ASSISTANT, content="olá"),
        ],
    )

    user_message, reply = conversation.find_committed_turn("a")

    assert user_message.content == "oi"
    assert reply.content == "olá"
    assert conversation.find_committed_turn("b") is None

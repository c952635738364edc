from __future__ import annotations

import asyncio
import os
import time
from typing import Callable, List, Optional

# Settings are read at import time, so the environment must be ready first.
os.environ["CONVERSATION_STORE_BACKEND"] = "memory"
os.environ["JWT_ALGORITHM"] = "HS256"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["JWT_ISSUER"] = "telemed-auth-service"

import jwt
import pytest
from fastapi.testclient import TestClient

from triage_assistant.engine.errors import HypothesisGeneratorUnavailable
from triage_assistant.engine.triage_engine import TriageEngine
from triage_assistant.models.conversation import DiagnosticHypothesis
from triage_assistant.services.conversation_store import InMemoryConversationStore
from triage_assistant.services.turn_lock import TurnLockRegistry


# Answers that walk a fresh conversation from initial to analysis
INTERVIEW_ANSWERS = [
    "estou com febre há 3 dias",
    "começou há 3 dias",
    "uns 6",
    "latejante",
    "piora à noite",
    "não tenho doenças crônicas",
]


def make_hypotheses() -> List[DiagnosticHypothesis]:
    return [
        DiagnosticHypothesis(condition="Dengue", probability=40, reasoning="febre"),
        DiagnosticHypothesis(condition="Gripe", probability=70, reasoning="sintomas gripais"),
    ]


class FakeHypothesisGenerator:
    """Scripted generator: each call pops the next outcome (a list or an exception)."""

    def __init__(self, outcomes: Optional[list] = None):
        self.outcomes = list(outcomes) if outcomes is not None else []
        self.calls: List[str] = []

    async def generate(self, symptom_summary: str) -> List[DiagnosticHypothesis]:
        self.calls.append(symptom_summary)
        outcome = self.outcomes.pop(0) if self.outcomes else make_hypotheses()
        if isinstance(outcome, Exception):
            raise outcome
        return sorted(outcome, key=lambda h: h.probability, reverse=True)


def unavailable() -> HypothesisGeneratorUnavailable:
    return HypothesisGeneratorUnavailable("reasoning service down")


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def store() -> InMemoryConversationStore:
    return InMemoryConversationStore()


@pytest.fixture
def generator() -> FakeHypothesisGenerator:
    return FakeHypothesisGenerator()


@pytest.fixture
def engine(store, generator) -> TriageEngine:
    return TriageEngine(
        store=store,
        hypothesis_generator=generator,
        locks=TurnLockRegistry(timeout=0.05),
    )


@pytest.fixture
def client(engine):
    import main
    from triage_assistant.api.dependencies import get_engine

    main.app.dependency_overrides[get_engine] = lambda: engine
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Callable[[str], dict[str, str]]:
    def _make(user_id: str) -> dict[str, str]:
        token = jwt.encode(
            {
                "userId": user_id,
                "email": f"{user_id}@example.com",
                "role": "patient",
                "iss": "telemed-auth-service",
                "exp": int(time.time()) + 3600,
            },
            "test-secret",
            algorithm="HS256",
        )
        return {"Authorization": f"Bearer {token}"}

    return _make

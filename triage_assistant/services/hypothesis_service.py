"""Hypothesis Generator: boundary to the external reasoning service."""

from triage_assistant.config.llm_config import get_hypothesis_model
from triage_assistant.config.settings import settings
from triage_assistant.engine.errors import HypothesisGeneratorUnavailable
from triage_assistant.engine.prompts import HYPOTHESIS_PROMPT, HYPOTHESIS_SYSTEM_PROMPT
from triage_assistant.models.conversation import DiagnosticHypothesis
from triage_assistant.utils.llm_helpers import invoke_llm_with_timeout, parse_json_content
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import ValidationError
from typing import Any, List, Optional, Protocol
import asyncio
import logging

logger = logging.getLogger(__name__)


class HypothesisGenerator(Protocol):
    """Proposes diagnostic hypotheses for a symptom summary."""

    async def generate(self, symptom_summary: str) -> List[DiagnosticHypothesis]:
        """Return hypotheses ordered by descending probability.

        Raises:
            HypothesisGeneratorUnavailable: the service could not answer
        """
        ...


def _coerce_probability(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().rstrip("%").strip()
    return value


def parse_hypotheses(payload: Any, limit: int) -> List[DiagnosticHypothesis]:
    """Validate the model's JSON into hypotheses, best first. Bad entries are skipped."""
    if isinstance(payload, dict):
        items = payload.get("hypotheses", [])
    elif isinstance(payload, list):
        items = payload
    else:
        items = []

    hypotheses = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            hypotheses.append(
                DiagnosticHypothesis(
                    condition=item.get("condition", ""),
                    probability=_coerce_probability(item.get("probability")),
                    reasoning=item.get("reasoning") or "",
                    ministry_guidelines=item.get("ministryGuidelines")
                    or item.get("ministry_guidelines"),
                )
            )
        except ValidationError as e:
            logger.warning(f"Discarding malformed hypothesis {item!r}: {e}")

    hypotheses = [h for h in hypotheses if h.condition.strip()]
    hypotheses.sort(key=lambda h: h.probability, reverse=True)
    return hypotheses[:limit]


class LLMHypothesisGenerator:
    """Hypothesis generator backed by a chat model."""

    def __init__(
        self,
        llm: Optional[BaseChatModel] = None,
        timeout: Optional[float] = None,
        max_hypotheses: Optional[int] = None,
    ):
        self._llm = llm
        self.timeout = timeout
        self.max_hypotheses = max_hypotheses or settings.max_hypotheses

    @property
    def llm(self) -> BaseChatModel:
        if self._llm is None:
            self._llm = get_hypothesis_model()
        return self._llm

    async def generate(self, symptom_summary: str) -> List[DiagnosticHypothesis]:
        messages = [
            SystemMessage(content=HYPOTHESIS_SYSTEM_PROMPT),
            HumanMessage(
                content=HYPOTHESIS_PROMPT.format(
                    summary=symptom_summary, max_hypotheses=self.max_hypotheses
                )
            ),
        ]

        try:
            response = await invoke_llm_with_timeout(
                self.llm, messages, timeout=self.timeout
            )
            payload = parse_json_content(response.content)
        except asyncio.TimeoutError as e:
            raise HypothesisGeneratorUnavailable("Reasoning service timed out") from e
        except Exception as e:
            raise HypothesisGeneratorUnavailable(
                f"Reasoning service failed: {e}"
            ) from e

        hypotheses = parse_hypotheses(payload, self.max_hypotheses)
        if not hypotheses:
            raise HypothesisGeneratorUnavailable("Reasoning service returned no hypotheses")

        logger.info(f"Generated {len(hypotheses)} diagnostic hypotheses")
        return hypotheses


# Global generator instance
_hypothesis_generator: Optional[LLMHypothesisGenerator] = None


def get_hypothesis_generator() -> LLMHypothesisGenerator:
    """Get or create the LLMHypothesisGenerator instance."""
    global _hypothesis_generator
    if _hypothesis_generator is None:
        _hypothesis_generator = LLMHypothesisGenerator()
    return _hypothesis_generator

"""LLM configuration for the external reasoning service.

Only one model is used by this service: the hypothesis model, queried once a
clinical interview reaches the analysis stage. Everything else in a turn is
deterministic and never touches the model.
"""

from langchain_openai import ChatOpenAI
from langchain_core.language_models import BaseChatModel
from triage_assistant.config.settings import settings
from typing import Optional
from pydantic import SecretStr
import logging

logger = logging.getLogger(__name__)

_hypothesis_model: Optional[BaseChatModel] = None


def _create_model(model_name: str) -> BaseChatModel:
    """Instantiate a ChatOpenAI client pointed at the configured endpoint."""
    logger.info(f"Creating reasoning model client: {model_name}")
    return ChatOpenAI(
        base_url=settings.llm_endpoint,
        api_key=SecretStr(settings.llm_api_key),
        model=model_name,
        temperature=settings.model_temperature,
        max_completion_tokens=settings.model_max_tokens,
    )


def get_hypothesis_model() -> BaseChatModel:
    """Return the shared model used to generate diagnostic hypotheses."""
    global _hypothesis_model

    if _hypothesis_model is None:
        _hypothesis_model = _create_model(settings.model_name)
    return _hypothesis_model

"""Chat model used by the question workflow.

One model serves both LLM calls of :mod:`ragfusion.agent.nodes`: the
alternative-question prompt, which must come back as JSON, and the
footnoted answer.  The temperature stays at ``0.0`` by default so the
paraphrases (and with them the fused ranking) are reproducible for the
same question; raise ``LLM_TEMPERATURE`` to widen the paraphrase spread.

Any OpenAI-compatible endpoint (vLLM, Ollama, ...) works by setting
``LLM_BASE_URL``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from langchain_openai import ChatOpenAI

if TYPE_CHECKING:
    from ragfusion.config import Settings

logger = logging.getLogger(__name__)


def get_llm(settings: Settings, temperature: float | None = None) -> ChatOpenAI:
    """Return the chat model configured by *settings*.

    *temperature* overrides ``settings.llm_temperature``.  Against a
    custom endpoint without a key, ``"EMPTY"`` is sent since the client
    refuses an empty one.
    """
    api_key = settings.openai_api_key or None
    base_url = settings.llm_base_url or None
    if base_url:
        logger.info("Question workflow uses %s at %s", settings.llm_model_name, base_url)
        api_key = api_key or "EMPTY"

    return ChatOpenAI(
        model=settings.llm_model_name,
        temperature=settings.llm_temperature if temperature is None else temperature,
        api_key=api_key,
        base_url=base_url,
    )

"""Graph nodes — each function is one step of the question workflow.

Node contract
-------------
* Accepts the full :class:`QuestionState` dict and the run config.
* Returns a *partial* dict with **only the keys that changed**.
* Collaborators (``llm``, ``aggregator``) come from
  ``config["configurable"]``, never from module globals, so every node
  is testable with fakes.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from langchain_core.messages import AIMessage
from langchain_core.runnables import RunnableConfig
from pydantic import BaseModel, Field, ValidationError

from ragfusion.agent.prompts import build_alternative_questions_prompt, build_answer_prompt
from ragfusion.agent.state import QuestionState

logger = logging.getLogger(__name__)

DEFAULT_PARAPHRASE_COUNT = 5
NO_MATCH_ANSWER = "No learned document matches this question."


class QuestionsResult(BaseModel):
    """Structured output of the alternative-questions prompt."""

    original_question: str = ""
    alternative_questions: list[str] = Field(default_factory=list)


# ── 1. GENERATE QUESTIONS ─────────────────────────────────────────────


async def generate_questions(state: QuestionState, config: RunnableConfig) -> dict[str, Any]:
    """Ask the LLM for alternative phrasings of the question.

    The original question is always the first paraphrase.  Skipped when
    the state already carries paraphrases.
    """
    question = state["question"]
    if state.get("paraphrases"):
        return {}

    conf = _configurable(config)
    count = conf.get("paraphrase_count", DEFAULT_PARAPHRASE_COUNT)
    response = await conf["llm"].ainvoke(build_alternative_questions_prompt(question, count))
    result = _safe_parse_json(response.content, original_question=question)

    for i, alternative in enumerate(result.alternative_questions):
        logger.info("Alternative Question[%d]: %s", i, alternative)

    paraphrases = _unique([question, *result.alternative_questions[:count]])
    return {"paraphrases": paraphrases}


# ── 2. RETRIEVE ───────────────────────────────────────────────────────


async def retrieve(state: QuestionState, config: RunnableConfig) -> dict[str, Any]:
    """Fuse the hits of every paraphrase into the best documents."""
    conf = _configurable(config)
    paraphrases = state.get("paraphrases") or [state["question"]]
    documents = await conf["aggregator"].best_match(paraphrases, limit=conf.get("result_limit", 1))
    return {"documents": documents}


# ── 3. SYNTHESIZE ─────────────────────────────────────────────────────


async def synthesize(state: QuestionState, config: RunnableConfig) -> dict[str, Any]:
    """Answer from the best documents, citing the top one.

    Without documents the LLM is not called.
    """
    documents = state.get("documents", [])
    if not documents:
        return {
            "answer": NO_MATCH_ANSWER,
            "reference": "",
            "messages": [AIMessage(content=NO_MATCH_ANSWER)],
        }

    conf = _configurable(config)
    response = await conf["llm"].ainvoke(build_answer_prompt(state["question"], documents))
    answer = response.content
    return {
        "answer": answer,
        "reference": documents[0].reference,
        "messages": [AIMessage(content=answer)],
    }


# ── Internal helpers ───────────────────────────────────────────────────


def _configurable(config: RunnableConfig | None) -> dict[str, Any]:
    return (config or {}).get("configurable", {})


def _unique(questions: list[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for q in questions:
        q = q.strip()
        if q and q.lower() not in seen:
            seen.add(q.lower())
            result.append(q)
    return result


def _safe_parse_json(text: str, *, original_question: str = "") -> QuestionsResult:
    """Best-effort parsing of the alternative-questions response.

    LLMs occasionally wrap JSON in markdown fences; those are stripped.
    Anything unparsable falls back to the original question alone.
    """
    cleaned = text.strip()
    if cleaned.startswith("```"):
        first_newline = cleaned.index("\n") if "\n" in cleaned else 3
        cleaned = cleaned[first_newline + 1 :]
        if cleaned.endswith("```"):
            cleaned = cleaned[:-3]
        cleaned = cleaned.strip()
    try:
        return QuestionsResult.model_validate(json.loads(cleaned))
    except (json.JSONDecodeError, ValidationError):
        logger.warning("Could not parse LLM JSON, using the original question only: %.200s", text)
        return QuestionsResult(original_question=original_question)

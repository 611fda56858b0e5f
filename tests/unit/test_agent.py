"""Unit tests for the question workflow.

All tests run without OpenAI or a vector store by injecting a mocked
chat model and a mocked aggregator through the run config.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.messages import AIMessage

from ragfusion.agent.graph import ask, build_graph, create_initial_state
from ragfusion.agent.llm import get_llm
from ragfusion.agent.nodes import (
    NO_MATCH_ANSWER,
    QuestionsResult,
    _safe_parse_json,
    generate_questions,
    retrieve,
    synthesize,
)
from ragfusion.agent.prompts import build_alternative_questions_prompt, build_answer_prompt
from ragfusion.config import Settings
from ragfusion.models import RankedDocument

QUESTION = "How long is a token cached?"
ALTERNATIVES = ["token cache lifetime", "When does a cached token expire?", "token TTL"]


# ── Fixtures & helpers ─────────────────────────────────────────────────


def _questions_json(alternatives: list[str] = ALTERNATIVES) -> str:
    return json.dumps({"original_question": QUESTION, "alternative_questions": alternatives})


def _fake_llm(*responses: str) -> MagicMock:
    llm = MagicMock()
    llm.ainvoke = AsyncMock(side_effect=[AIMessage(content=r) for r in responses])
    return llm


def _fake_aggregator(documents: list[RankedDocument]) -> MagicMock:
    aggregator = MagicMock()
    aggregator.best_match = AsyncMock(return_value=documents)
    return aggregator


def _document(**overrides: Any) -> RankedDocument:
    data = {
        "source_path": "/docs/auth.md",
        "score": 2.4,
        "hits": 3,
        "chunk_index": 2,
        "content": "Tokens are cached for one hour.",
    }
    data.update(overrides)
    return RankedDocument(**data)


def _config(**configurable: Any) -> dict[str, Any]:
    return {"configurable": configurable}


# ═══════════════════════════════════════════════════════════════════════
# Prompt construction
# ═══════════════════════════════════════════════════════════════════════


class TestPrompts:
    def test_alternative_questions_prompt(self) -> None:
        msgs = build_alternative_questions_prompt(QUESTION, 4)
        assert len(msgs) == 2
        assert "4 different versions" in msgs[0].content
        assert "alternative_questions" in msgs[0].content
        assert QUESTION in msgs[-1].content

    def test_answer_prompt_lists_document_and_link(self) -> None:
        msgs = build_answer_prompt(QUESTION, [_document()])
        human = msgs[-1].content
        assert "Tokens are cached for one hour." in human
        assert "Link: /docs/auth.md#0002" in human
        assert QUESTION in human
        assert "footnote" in msgs[0].content


# ═══════════════════════════════════════════════════════════════════════
# Nodes
# ═══════════════════════════════════════════════════════════════════════


class TestGenerateQuestions:
    def test_original_question_comes_first(self) -> None:
        llm = _fake_llm(_questions_json())
        state = create_initial_state(QUESTION)
        result = asyncio.run(generate_questions(state, _config(llm=llm, paraphrase_count=5)))
        assert result["paraphrases"] == [QUESTION, *ALTERNATIVES]

    def test_caps_and_deduplicates(self) -> None:
        llm = _fake_llm(_questions_json([QUESTION.upper(), "a", "b", "c"]))
        result = asyncio.run(
            generate_questions(create_initial_state(QUESTION), _config(llm=llm, paraphrase_count=2))
        )
        assert result["paraphrases"] == [QUESTION, "a"]

    def test_unparsable_response_falls_back_to_question(self) -> None:
        llm = _fake_llm("I cannot do that")
        result = asyncio.run(generate_questions(create_initial_state(QUESTION), _config(llm=llm)))
        assert result["paraphrases"] == [QUESTION]

    def test_given_paraphrases_skip_llm(self) -> None:
        llm = _fake_llm()
        state = create_initial_state(QUESTION, ["p1", "p2"])
        assert asyncio.run(generate_questions(state, _config(llm=llm))) == {}
        llm.ainvoke.assert_not_called()


class TestRetrieve:
    def test_passes_paraphrases_and_limit(self) -> None:
        aggregator = _fake_aggregator([_document()])
        state = create_initial_state(QUESTION, [QUESTION, "alt"])
        result = asyncio.run(retrieve(state, _config(aggregator=aggregator, result_limit=2)))
        aggregator.best_match.assert_awaited_once_with([QUESTION, "alt"], limit=2)
        assert result["documents"][0].source_path == "/docs/auth.md"


class TestSynthesize:
    def test_answer_with_reference(self) -> None:
        llm = _fake_llm("One hour.[^1]\n\n[^1]: /docs/auth.md#0002")
        state = {**create_initial_state(QUESTION), "documents": [_document()]}
        result = asyncio.run(synthesize(state, _config(llm=llm)))
        assert result["answer"].startswith("One hour.")
        assert result["reference"] == "/docs/auth.md#0002"
        assert isinstance(result["messages"][0], AIMessage)

    def test_no_documents_skips_llm(self) -> None:
        llm = _fake_llm()
        result = asyncio.run(synthesize(create_initial_state(QUESTION), _config(llm=llm)))
        assert result["answer"] == NO_MATCH_ANSWER
        assert result["reference"] == ""
        llm.ainvoke.assert_not_called()


# ═══════════════════════════════════════════════════════════════════════
# Internal helpers
# ═══════════════════════════════════════════════════════════════════════


class TestSafeParseJson:
    def test_valid(self) -> None:
        result = _safe_parse_json(_questions_json(), original_question=QUESTION)
        assert result.alternative_questions == ALTERNATIVES

    def test_markdown_wrapped(self) -> None:
        result = _safe_parse_json(f"```json\n{_questions_json()}\n```")
        assert result.original_question == QUESTION

    @pytest.mark.parametrize("text", ["garbage", '{"alternative_questions": "not a list"}'])
    def test_fallback(self, text: str) -> None:
        assert _safe_parse_json(text, original_question="q") == QuestionsResult(original_question="q")


# ═══════════════════════════════════════════════════════════════════════
# Graph
# ═══════════════════════════════════════════════════════════════════════


class TestGraph:
    def test_graph_has_expected_nodes(self) -> None:
        node_names = set(build_graph().get_graph().nodes.keys())
        for expected in ("generate_questions", "retrieve", "synthesize"):
            assert expected in node_names, f"Missing node: {expected}"

    def test_end_to_end(self) -> None:
        llm = _fake_llm(_questions_json(), "Tokens live for one hour.[^1]")
        aggregator = _fake_aggregator([_document()])
        result = asyncio.run(ask(QUESTION, llm=llm, aggregator=aggregator, paraphrase_count=3))

        assert result["paraphrases"] == [QUESTION, *ALTERNATIVES]
        aggregator.best_match.assert_awaited_once_with([QUESTION, *ALTERNATIVES], limit=1)
        assert result["answer"] == "Tokens live for one hour.[^1]"
        assert result["reference"] == "/docs/auth.md#0002"
        assert llm.ainvoke.await_count == 2

    def test_end_to_end_without_match(self) -> None:
        llm = _fake_llm(_questions_json())
        result = asyncio.run(ask(QUESTION, llm=llm, aggregator=_fake_aggregator([])))
        assert result["answer"] == NO_MATCH_ANSWER
        assert result["documents"] == []


class TestGetLlm:
    def test_temperature_from_settings(self) -> None:
        settings = Settings(openai_api_key="sk-test", llm_temperature=0.4, _env_file=None)
        assert get_llm(settings).temperature == pytest.approx(0.4)
        assert get_llm(settings, temperature=0.0).temperature == 0.0

    def test_compatible_endpoint(self) -> None:
        settings = Settings(llm_base_url="http://localhost:8001/v1", _env_file=None)
        llm = get_llm(settings)
        assert llm.openai_api_base == "http://localhost:8001/v1"
        assert llm.openai_api_key.get_secret_value() == "EMPTY"

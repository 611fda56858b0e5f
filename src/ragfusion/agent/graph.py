"""LangGraph definition of the question workflow.

Wires the nodes in :mod:`ragfusion.agent.nodes` into a compiled
:class:`StateGraph`:

1. **Generate** alternative phrasings of the question.
2. **Retrieve** the best source document across all phrasings.
3. **Synthesise** an answer that cites that document.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from langgraph.graph import END, StateGraph

from ragfusion.agent.nodes import generate_questions, retrieve, synthesize
from ragfusion.agent.state import QuestionState

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

    from ragfusion.retrieval import RelevanceAggregator


def build_graph():
    """Construct and return the compiled question workflow.

    Graph topology::

        START → generate_questions → retrieve → synthesize → END

    Returns
    -------
    CompiledGraph
        Run it with ``await graph.ainvoke(state, config=...)``; the
        config must carry ``llm`` and ``aggregator`` under
        ``"configurable"`` (see :func:`ask`).
    """
    workflow = StateGraph(QuestionState)

    # -- Nodes ---------------------------------------------------------------
    workflow.add_node("generate_questions", generate_questions)
    workflow.add_node("retrieve", retrieve)
    workflow.add_node("synthesize", synthesize)

    # -- Edges ---------------------------------------------------------------
    workflow.set_entry_point("generate_questions")
    workflow.add_edge("generate_questions", "retrieve")
    workflow.add_edge("retrieve", "synthesize")
    workflow.add_edge("synthesize", END)

    return workflow.compile()


# ---------------------------------------------------------------------------
# Convenience helpers
# ---------------------------------------------------------------------------


def create_initial_state(question: str, paraphrases: list[str] | None = None) -> dict[str, Any]:
    """Build the initial state dict for ``graph.ainvoke()``."""
    return {
        "question": question,
        "paraphrases": list(paraphrases or []),
        "documents": [],
        "answer": "",
        "reference": "",
        "messages": [],
    }


async def ask(
    question: str,
    *,
    llm: BaseChatModel,
    aggregator: RelevanceAggregator,
    paraphrase_count: int = 5,
    result_limit: int = 1,
    paraphrases: list[str] | None = None,
    graph: Any = None,
) -> dict[str, Any]:
    """Run the workflow for one question and return the final state.

    Usage::

        result = await ask("How long is a token cached?", llm=llm, aggregator=aggregator)
        print(result["answer"], result["reference"])
    """
    graph = graph or build_graph()
    config = {
        "configurable": {
            "llm": llm,
            "aggregator": aggregator,
            "paraphrase_count": paraphrase_count,
            "result_limit": result_limit,
        }
    }
    return await graph.ainvoke(create_initial_state(question, paraphrases), config=config)

"""
Agent — question → paraphrases → fused retrieval → cited answer, built
with LangGraph.

Public API
----------
- :func:`build_graph` — compile the workflow.
- :func:`create_initial_state` — bootstrap the state dict.
- :func:`ask` — run the workflow for one question.
- :class:`QuestionState` — the TypedDict flowing through every node.
"""

from ragfusion.agent.graph import ask, build_graph, create_initial_state
from ragfusion.agent.state import QuestionState

__all__ = [
    "QuestionState",
    "ask",
    "build_graph",
    "create_initial_state",
]

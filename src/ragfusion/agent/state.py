"""State flowing through the question workflow."""

from __future__ import annotations

from typing import Annotated, TypedDict

from langchain_core.messages import BaseMessage
from langgraph.graph.message import add_messages

from ragfusion.models import RankedDocument


class QuestionState(TypedDict):
    """Typed state shared by every node.

    Attributes
    ----------
    question:
        The user's original question.
    paraphrases:
        The question plus its generated alternatives; these are what the
        retriever searches.  Pre-filled paraphrases skip generation.
    documents:
        Best matching source documents, best first.
    answer:
        Final answer text.
    reference:
        ``path#chunk`` of the document the answer is based on, empty when
        nothing matched.
    messages:
        Conversation history managed by LangGraph's ``add_messages``.
    """

    question: str
    paraphrases: list[str]
    documents: list[RankedDocument]
    answer: str
    reference: str
    messages: Annotated[list[BaseMessage], add_messages]

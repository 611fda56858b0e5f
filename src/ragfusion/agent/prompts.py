"""Prompt templates for the question workflow."""

from __future__ import annotations

from typing import TYPE_CHECKING

from langchain_core.messages import HumanMessage, SystemMessage

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

    from ragfusion.models import RankedDocument

# ── 1. Alternative questions ──────────────────────────────────────────

ALTERNATIVE_QUESTIONS_SYSTEM = """\
You are an AI language model assistant.

Your task is to generate {count} different versions of the given user
question to retrieve relevant documents from a vector database.  By
generating alternative questions, you can improve the quality of the
retrieved documents.

Respond with a JSON object with exactly these keys:

  "original_question"     – the user question, unchanged
  "alternative_questions" – list of {count} rephrased questions

Respond with **only** valid JSON — no markdown fences, no commentary.
"""


def build_alternative_questions_prompt(question: str, count: int = 5) -> list[BaseMessage]:
    """Build the prompt for the ``generate_questions`` node."""
    return [
        SystemMessage(content=ALTERNATIVE_QUESTIONS_SYSTEM.format(count=count)),
        HumanMessage(content=f"Original question: {question}"),
    ]


# ── 2. Answer with footnote reference ─────────────────────────────────

ANSWER_SYSTEM = """\
You are a precise, helpful assistant. Answer the user's question using
**only** the provided documents.

Rules:
1. Include a link to the relevant source in the response as a footnote,
   using the document's Link value.
2. If the documents do not contain the answer, say so honestly; do NOT
   fabricate information.
3. Be concise.
"""


def build_answer_prompt(question: str, documents: list[RankedDocument]) -> list[BaseMessage]:
    """Build the prompt for the ``synthesize`` node.

    Parameters
    ----------
    question:
        The user's original question.
    documents:
        Best matching documents, each with its full content.
    """
    return [
        SystemMessage(content=ANSWER_SYSTEM),
        HumanMessage(
            content=(
                "Please use this information to answer the question:\n\n"
                f"{_format_documents(documents)}\n\n"
                f"Question: {question}"
            )
        ),
    ]


def _format_documents(documents: list[RankedDocument]) -> str:
    parts: list[str] = []
    for doc in documents:
        parts.append(
            f"Name: {doc.source_path}\n"
            f"Value: {doc.content}\n"
            f"Link: {doc.reference}\n"
            "-----------------"
        )
    return "\n".join(parts)

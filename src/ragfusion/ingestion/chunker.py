"""Token-bounded text chunking.

Text is cut in three passes:

1. **lines** — short pieces of at most ``max_tokens_per_line`` tokens,
   produced by a LangChain splitter (Markdown-aware for ``.md`` files);
2. **paragraphs** — consecutive lines merged up to
   ``max_tokens_per_paragraph`` tokens.  Each paragraph is one chunk and
   gets one embedding;
3. **request batches** — consecutive paragraphs grouped so that one
   embedding request stays under the backend's per-request token limit
   and array size.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from os import PathLike
from pathlib import Path

from langchain_text_splitters import MarkdownTextSplitter, RecursiveCharacterTextSplitter

from ragfusion.ingestion.tokenizer import TokenCounter
from ragfusion.models import ChunkText

MARKDOWN_SUFFIXES = frozenset({".md", ".markdown"})

# Sentence boundaries first, then clause punctuation, then whitespace.
PLAIN_TEXT_SEPARATORS = ["\n\n", "\n", ". ", "! ", "? ", "; ", ": ", ", ", " ", ""]

_HEADING = re.compile(r"^#{1,6}\s")
_SECTION_START = re.compile(r"^(?=#{1,6}\s)", re.MULTILINE)


def is_markdown_path(path: str | PathLike[str]) -> bool:
    return Path(path).suffix.lower() in MARKDOWN_SUFFIXES


class Chunker:
    """Split documents into token-bounded chunks and request batches.

    Parameters
    ----------
    count_tokens:
        Token counter; must be the one matching the embedding model.
    max_tokens_per_line / max_tokens_per_paragraph:
        Size of the intermediate lines and of the final chunks.
    max_tokens_per_request:
        Exclusive upper bound on the summed token count of a batch.
    max_items_per_request:
        Maximum number of chunks sent in one embedding request.
    """

    def __init__(
        self,
        count_tokens: TokenCounter,
        *,
        max_tokens_per_line: int = 50,
        max_tokens_per_paragraph: int = 100,
        max_tokens_per_request: int = 8191,
        max_items_per_request: int = 16,
    ) -> None:
        if max_tokens_per_line > max_tokens_per_paragraph:
            raise ValueError(
                f"max_tokens_per_line ({max_tokens_per_line}) must be <= "
                f"max_tokens_per_paragraph ({max_tokens_per_paragraph})"
            )
        self.count_tokens = count_tokens
        self.max_tokens_per_line = max_tokens_per_line
        self.max_tokens_per_paragraph = max_tokens_per_paragraph
        self.max_tokens_per_request = max_tokens_per_request
        self.max_items_per_request = max_items_per_request

        self._markdown_splitter = MarkdownTextSplitter(
            chunk_size=max_tokens_per_line,
            chunk_overlap=0,
            length_function=count_tokens,
        )
        self._plain_splitter = RecursiveCharacterTextSplitter(
            separators=PLAIN_TEXT_SEPARATORS,
            chunk_size=max_tokens_per_line,
            chunk_overlap=0,
            length_function=count_tokens,
        )

    # -- passes ---------------------------------------------------------------

    def split_lines(self, text: str, is_markdown: bool = False) -> list[str]:
        """Cut *text* into lines of at most ``max_tokens_per_line`` tokens.

        Markdown is first cut at headings so that no line spans two
        sections.
        """
        if not is_markdown:
            return [line for line in self._plain_splitter.split_text(text) if line.strip()]
        lines: list[str] = []
        for section in _SECTION_START.split(text):
            if section.strip():
                lines.extend(line for line in self._markdown_splitter.split_text(section) if line.strip())
        return lines

    def split_paragraphs(self, lines: Iterable[str], is_markdown: bool = False) -> Iterator[str]:
        """Greedily merge *lines* into paragraphs.

        In Markdown a heading always opens a new paragraph.
        """
        separator_tokens = self.count_tokens("\n")
        current: list[str] = []
        running = 0
        for line in lines:
            tokens = self.count_tokens(line)
            joint = separator_tokens if current else 0
            opens_section = is_markdown and bool(_HEADING.match(line))
            if current and (opens_section or running + joint + tokens > self.max_tokens_per_paragraph):
                yield "\n".join(current)
                current, running, joint = [], 0, 0
            current.append(line)
            running += joint + tokens
        if current:
            yield "\n".join(current)

    def chunk(self, text: str, is_markdown: bool = False) -> Iterator[ChunkText]:
        """Yield the chunks of *text*; nothing for blank text."""
        if not text or text.isspace():
            return
        lines = self.split_lines(text, is_markdown)
        for paragraph in self.split_paragraphs(lines, is_markdown):
            yield ChunkText(content=paragraph, token_count=self.count_tokens(paragraph))

    def batch(self, chunks: Iterable[ChunkText]) -> Iterator[list[ChunkText]]:
        """Group *chunks* into embedding requests, preserving order.

        A chunk joins the open batch while the running token count plus
        its own stays below ``max_tokens_per_request`` and the batch holds
        fewer than ``max_items_per_request`` items; otherwise the batch is
        emitted and a new one starts with that chunk.
        """
        current: list[ChunkText] = []
        running = 0
        for chunk in chunks:
            fits = (
                running + chunk.token_count < self.max_tokens_per_request
                and len(current) < self.max_items_per_request
            )
            if current and not fits:
                yield current
                current, running = [], 0
            current.append(chunk)
            running += chunk.token_count
        if current:
            yield current

    def chunk_batches(self, text: str, is_markdown: bool = False) -> Iterator[list[ChunkText]]:
        """Lazy one-shot pipeline of :meth:`chunk` and :meth:`batch`."""
        return self.batch(self.chunk(text, is_markdown))

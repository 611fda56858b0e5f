"""Token counting used to size chunks for the embedding model."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Callable

import tiktoken

logger = logging.getLogger(__name__)

TokenCounter = Callable[[str], int]
"""Any ``text -> token count`` function.  Must match the embedding model."""

FALLBACK_ENCODING = "cl100k_base"


@lru_cache(maxsize=8)
def _encoding_for(model: str) -> tiktoken.Encoding:
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        logger.warning("No tiktoken encoding known for %r, using %s", model, FALLBACK_ENCODING)
        return tiktoken.get_encoding(FALLBACK_ENCODING)


def tiktoken_counter(model: str = "text-embedding-3-small") -> TokenCounter:
    """Return a counter backed by the tiktoken encoding for *model*.

    The encoding is loaded on first use, not when the counter is created.
    """

    def count(text: str) -> int:
        return len(_encoding_for(model).encode(text, disallowed_special=()))

    return count

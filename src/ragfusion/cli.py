"""Command-line entry point.

Usage::

    ragfusion ingest DIR [PATTERNS]          learn DIR (default "*.txt,*.md")
    ragfusion ask DIR QUESTION [--patterns]  learn DIR, then answer QUESTION
    ragfusion clean-cache                    delete the embedding cache
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from ragfusion.config import Settings

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ragfusion",
        description="Incremental document embedding and multi-query retrieval",
    )
    sub = parser.add_subparsers(dest="command")

    ingest = sub.add_parser("ingest", help="Embed and index the documents of a directory")
    ingest.add_argument("directory")
    ingest.add_argument("patterns", nargs="?", default=None, help='e.g. "*.txt,*.md"')

    ask = sub.add_parser("ask", help="Learn a directory, then answer a question from it")
    ask.add_argument("directory")
    ask.add_argument("question")
    ask.add_argument("--patterns", default=None, help='e.g. "*.txt,*.md"')

    sub.add_parser("clean-cache", help="Delete the local embedding cache")
    return parser


def _components(settings: Settings):
    from ragfusion.ingestion import IngestionPipeline, get_embeddings
    from ragfusion.retrieval import create_vector_index
    from ragfusion.storage import LocalBlobStore

    embeddings = get_embeddings(settings)
    index = create_vector_index(settings)
    blob_store = LocalBlobStore(settings.blob_dir)
    pipeline = IngestionPipeline.from_settings(settings, index, embeddings, blob_store)
    return pipeline, embeddings, index, blob_store


async def _ingest(settings: Settings, directory: str, patterns: str | None) -> int:
    pipeline, *_ = _components(settings)
    print(f"Learning from {directory} with patterns {settings.patterns(patterns)}")
    print(f"Caching at {pipeline.cache.root}")
    records = await pipeline.learn(directory, settings.patterns(patterns))
    print(f"{len(records)} record(s) learned: {pipeline.stats.as_dict()}")
    return 0


async def _ask(settings: Settings, directory: str, question: str, patterns: str | None) -> int:
    from ragfusion.agent import ask
    from ragfusion.agent.llm import get_llm
    from ragfusion.retrieval import RelevanceAggregator

    pipeline, embeddings, index, blob_store = _components(settings)
    await pipeline.learn(directory, settings.patterns(patterns))
    aggregator = RelevanceAggregator(
        index,
        embeddings,
        blob_store=blob_store,
        top_k_per_query=settings.top_k_per_query,
    )
    result = await ask(
        question,
        llm=get_llm(settings),
        aggregator=aggregator,
        paraphrase_count=settings.paraphrase_count,
        result_limit=settings.result_limit,
    )
    print(f"Question: {question}")
    for i, paraphrase in enumerate(result["paraphrases"][1:]):
        print(f"Alternative Question[{i}]: {paraphrase}")
    print(f"Answer: {result['answer']}")
    if result["reference"]:
        print(f"Reference: {result['reference']}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    settings = Settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "clean-cache":
        from ragfusion.ingestion import EmbeddingCache

        cache = EmbeddingCache(settings.cache_dir)
        cache.clear()
        print(f"{cache.root} deleted")
        return 0

    try:
        if args.command == "ingest":
            return asyncio.run(_ingest(settings, args.directory, args.patterns))
        return asyncio.run(_ask(settings, args.directory, args.question, args.patterns))
    except (FileNotFoundError, NotADirectoryError, ValueError) as exc:
        logger.error("%s", exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())

"""FastAPI application exposing ingestion and question answering.

Run with ``uvicorn ragfusion.serving.app:create_app --factory``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from ragfusion import __version__
from ragfusion.agent import ask, build_graph
from ragfusion.config import Settings

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

    from ragfusion.ingestion import IngestionPipeline
    from ragfusion.retrieval import RelevanceAggregator

logger = logging.getLogger(__name__)


# ── Request / Response schemas ────────────────────────────────────────
class IngestRequest(BaseModel):
    """Directory to learn, with optional ``"*.txt,*.md"`` style patterns."""

    directory: str
    patterns: str | None = None


class IngestResponse(BaseModel):
    records: int
    stats: dict[str, int] = {}


class QueryRequest(BaseModel):
    """Incoming question; pre-computed paraphrases skip generation."""

    question: str
    paraphrases: list[str] | None = None


class QueryResponse(BaseModel):
    """Answer with the reference of the document it is based on."""

    answer: str
    reference: str = ""
    score: float | None = None
    hits: int | None = None
    paraphrases: list[str] = []


def _build_components(settings: Settings) -> tuple[IngestionPipeline, RelevanceAggregator, BaseChatModel]:
    from ragfusion.agent.llm import get_llm
    from ragfusion.ingestion import IngestionPipeline, get_embeddings
    from ragfusion.retrieval import RelevanceAggregator, create_vector_index
    from ragfusion.storage import LocalBlobStore

    embeddings = get_embeddings(settings)
    index = create_vector_index(settings)
    blob_store = LocalBlobStore(settings.blob_dir)
    pipeline = IngestionPipeline.from_settings(settings, index, embeddings, blob_store)
    aggregator = RelevanceAggregator(
        index,
        embeddings,
        blob_store=blob_store,
        top_k_per_query=settings.top_k_per_query,
    )
    return pipeline, aggregator, get_llm(settings)


def create_app(
    settings: Settings | None = None,
    *,
    pipeline: IngestionPipeline | None = None,
    aggregator: RelevanceAggregator | None = None,
    llm: BaseChatModel | None = None,
) -> FastAPI:
    """Build the application.

    Components not passed in are built from *settings*; the pipeline
    and the aggregator must share one vector index.
    """
    settings = settings or Settings()
    if pipeline is None or aggregator is None or llm is None:
        built = _build_components(settings)
        pipeline = pipeline or built[0]
        aggregator = aggregator or built[1]
        llm = llm or built[2]
    graph = build_graph()

    app = FastAPI(
        title="ragfusion API",
        version=__version__,
        description="Incremental document embedding and multi-query retrieval.",
    )

    # ── Routes ────────────────────────────────────────────────────────
    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness probe."""
        return {"status": "ok"}

    @app.post("/ingest", response_model=IngestResponse)
    async def ingest(request: IngestRequest) -> IngestResponse:
        """Learn every matching file of a server-side directory."""
        try:
            records = await pipeline.learn(request.directory, settings.patterns(request.patterns))
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return IngestResponse(records=len(records), stats=pipeline.stats.as_dict())

    @app.post("/query", response_model=QueryResponse)
    async def query(request: QueryRequest) -> QueryResponse:
        """Answer a question from the best matching learned document."""
        if not request.question.strip():
            raise HTTPException(status_code=400, detail="question must not be empty")
        try:
            result: dict[str, Any] = await ask(
                request.question,
                llm=llm,
                aggregator=aggregator,
                paraphrase_count=settings.paraphrase_count,
                result_limit=settings.result_limit,
                paraphrases=request.paraphrases,
                graph=graph,
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        documents = result.get("documents", [])
        best = documents[0] if documents else None
        return QueryResponse(
            answer=result["answer"],
            reference=result["reference"],
            score=best.score if best else None,
            hits=best.hits if best else None,
            paraphrases=result["paraphrases"],
        )

    return app

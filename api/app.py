# Path: api/app.py
# Purpose: Expose a FastAPI application for ingest and query runs.
# Layer: api.
# Details: Provides health and collection info plus endpoints delegating to the core pipelines.

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from core.errors import ConfigurationError
from core.indexing.pipeline import IngestPipeline
from core.models.domain import SearchParams
from core.search.pipeline import QueryPipeline
from core.vector_store.base import VectorStore


class IngestRequest(BaseModel):
    root: str = Field(description="Directory to ingest recursively.")


class QueryRequest(BaseModel):
    input: str = Field(description="Probe image or directory of tag folders.")
    output: Optional[str] = Field(default=None, description="Where matched files are written.")
    limit: int = Field(default=100, ge=1)
    score_threshold: float = Field(default=0.5)
    exact: bool = Field(default=False)
    hnsw_ef: int = Field(default=32, ge=1)
    use_http: bool = Field(default=False, description="Fetch matches by URL instead of from the blob store.")


def create_app(
    ingest: Optional[IngestPipeline] = None,
    query: Optional[QueryPipeline] = None,
    vector_store: Optional[VectorStore] = None,
    collection: Optional[str] = None,
) -> FastAPI:
    """Create a FastAPI app instance wired to the provided pipelines."""

    app = FastAPI(title="imgtagdb API", version="0.1.0")

    @app.get("/health")
    def health() -> Dict[str, str]:
        """Return a simple health status payload."""

        return {"status": "ok"}

    @app.get("/collection")
    def collection_info() -> Dict[str, Any]:
        """Describe the configured collection."""

        if vector_store is None or collection is None:
            raise HTTPException(status_code=500, detail="Vector store is not configured.")
        if not vector_store.collection_exists(collection):
            raise HTTPException(status_code=404, detail=f"Collection {collection} does not exist.")
        info = vector_store.collection_info(collection)
        return {"name": info.name, "dim": info.dim, "points_count": info.points_count}

    @app.post("/ingest")
    def run_ingest(payload: IngestRequest) -> Dict[str, Any]:
        """Ingest a directory and return the run counters."""

        if ingest is None:
            raise HTTPException(status_code=500, detail="Ingest pipeline is not configured.")
        try:
            report = ingest.run(payload.root)
        except ConfigurationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return report.to_dict()

    @app.post("/query")
    def run_query(payload: QueryRequest) -> Dict[str, Any]:
        """Search with a probe set and download the matches."""

        if query is None:
            raise HTTPException(status_code=500, detail="Query pipeline is not configured.")
        params = SearchParams(
            limit=payload.limit,
            score_threshold=payload.score_threshold,
            exact=payload.exact,
            hnsw_ef=payload.hnsw_ef,
        )
        try:
            report = query.run(payload.input, payload.output, params=params, use_http=payload.use_http)
        except (ConfigurationError, ValueError) as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return report.to_dict()

    return app

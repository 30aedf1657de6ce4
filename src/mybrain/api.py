"""Summary: FastAPI application for MyBrain.

Importance: Exposes summaries, live views, and sync controls to UI clients over HTTP.
Alternatives: Expose summaries only through the CLI.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, Header, HTTPException
from pydantic import BaseModel, Field

from mybrain.app import AppContext, build_context
from mybrain.config import AppConfig
from mybrain.models import Source, SummaryKind
from mybrain.providers.base import SourceAdapter
from mybrain.services import KIND_FILTERS
from mybrain.time_filters import TimeFilter


logger = logging.getLogger(__name__)


class SyncRequest(BaseModel):
    """Summary: Request payload for a manual sync.

    Importance: Lets clients force a full-window resync.
    Alternatives: Use a query parameter.
    """

    full_sync: bool = False


class QuestionRequest(BaseModel):
    """Summary: Request payload for questions over a source.

    Importance: Keeps question inputs explicit for API clients.
    Alternatives: Pass the question as a query parameter.
    """

    source: str
    question: str = Field(min_length=1, max_length=2000)


class TopicRequest(BaseModel):
    """Request payload for topic details."""

    topic: str = Field(min_length=1, max_length=200)
    source: str
    chat_name: str | None = None


def create_app(config: AppConfig, context: AppContext | None = None) -> FastAPI:
    """Summary: Create a FastAPI app wired to a MyBrain context.

    Importance: The context is built once and closed by the lifespan handler on shutdown.
    Alternatives: Build one module-level context at import time.
    """

    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=config.log_level.upper(), format="%(levelname)s %(name)s: %(message)s"
        )
    ctx = context or build_context(config)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        await ctx.aclose()

    app = FastAPI(title="MyBrain API", version="0.1.0", lifespan=lifespan)
    app.state.context = ctx

    def require_api_key(x_api_key: str | None = Header(default=None)) -> None:
        """Summary: Reject requests without the configured X-API-Key.

        Importance: Digests contain private messages, so a key guards them when set.
        Alternatives: Bind the server to localhost only.
        """

        if not config.api_key:
            return
        if x_api_key != config.api_key:
            raise HTTPException(status_code=401, detail="Invalid API key")

    def resolve_adapter(source: str) -> SourceAdapter[Any]:
        try:
            return ctx.adapters[Source.parse(source)]
        except (ValueError, KeyError) as exc:
            raise HTTPException(status_code=404, detail="Unknown source") from exc

    def resolve_filter(time_filter: str) -> TimeFilter:
        try:
            return TimeFilter.parse(time_filter)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    @app.get("/health")
    def health() -> dict[str, Any]:
        """Summary: Report liveness and which sources are connected.

        Importance: Reports which sources are connected.
        Alternatives: Call the summary routes directly.
        """

        return {
            "status": "ok",
            "sources": {source.value: adapter.is_connected for source, adapter in ctx.adapters.items()},
        }

    @app.get("/summaries", dependencies=[Depends(require_api_key)])
    async def all_summaries(time_filter: str = "all") -> dict[str, Any]:
        return await ctx.aggregator.get_all_summaries(resolve_filter(time_filter))

    @app.get("/summaries/combined", dependencies=[Depends(require_api_key)])
    async def combined_summary(force_refresh: bool = False) -> dict[str, Any]:
        """Summary: Daily overview across all connected sources.

        Importance: Served through the summary cache like per-source summaries.
        Alternatives: Build the overview on the client.
        """

        response = await ctx.aggregator.get_combined_summary(force_refresh=force_refresh)
        return response.to_dict()

    @app.get("/summaries/{source}/{kind}", dependencies=[Depends(require_api_key)])
    async def source_summary(source: str, kind: str, force_refresh: bool = False) -> dict[str, Any]:
        adapter = resolve_adapter(source)
        try:
            parsed_kind = SummaryKind.parse(kind)
        except ValueError as exc:
            raise HTTPException(status_code=404, detail="Unknown summary kind") from exc
        if parsed_kind not in KIND_FILTERS:
            raise HTTPException(status_code=404, detail="Unknown summary kind")
        response = await ctx.summaries.get_summary(
            adapter.source, parsed_kind, force_refresh=force_refresh
        )
        return response.to_dict()

    @app.get("/sources/{source}/live", dependencies=[Depends(require_api_key)])
    async def live_view(source: str, time_filter: str = "all") -> dict[str, Any]:
        view = await resolve_adapter(source).get_summary(resolve_filter(time_filter))
        return view.to_dict()

    @app.get("/sources/{source}/records", dependencies=[Depends(require_api_key)])
    def records(source: str, time_filter: str = "all", limit: int = 50) -> list[dict[str, Any]]:
        """Summary: List stored records for a source.

        Importance: Exposes the local-first store without touching the provider.
        Alternatives: Return only counts.
        """

        adapter = resolve_adapter(source)
        stored = ctx.store.query(adapter.source, resolve_filter(time_filter), limit=limit)
        return [asdict(record) for record in stored]

    @app.get("/sources/{source}/offline", dependencies=[Depends(require_api_key)])
    def offline_view(source: str, time_filter: str = "all") -> dict[str, Any]:
        return resolve_adapter(source).get_from_database(resolve_filter(time_filter))

    @app.get("/sources/{source}/watermark", dependencies=[Depends(require_api_key)])
    def watermark(source: str) -> dict[str, Any]:
        adapter = resolve_adapter(source)
        current = ctx.store.get_watermark(adapter.source)
        if current is None:
            return {"source": adapter.source.value, "last_sync_at": None, "records_synced": 0}
        return {
            "source": adapter.source.value,
            "last_sync_at": current.last_sync_at,
            "records_synced": current.records_synced,
        }

    @app.post("/sources/{source}/sync", dependencies=[Depends(require_api_key)])
    async def sync(source: str, payload: SyncRequest | None = None) -> dict[str, Any]:
        """Summary: Run a sync pass and wait for it.

        Importance: Failures come back as an error body, never as a 500.
        Alternatives: Queue the sync and return immediately.
        """

        full_sync = payload.full_sync if payload else False
        result = await resolve_adapter(source).sync_to_database(full_sync=full_sync)
        return result.to_dict()

    @app.post("/sources/{source}/disconnect", dependencies=[Depends(require_api_key)])
    def disconnect(source: str) -> dict[str, Any]:
        resolve_adapter(source).disconnect()
        return {"success": True}

    @app.post("/ask", dependencies=[Depends(require_api_key)])
    async def ask(payload: QuestionRequest) -> dict[str, Any]:
        return await ctx.summaries.ask_question(payload.source, payload.question)

    @app.post("/topics", dependencies=[Depends(require_api_key)])
    async def topics(payload: TopicRequest) -> dict[str, Any]:
        return await ctx.summaries.topic_details(payload.topic, payload.source, payload.chat_name)

    @app.get("/stats", dependencies=[Depends(require_api_key)])
    def stats() -> dict[str, int]:
        """Summary: Return stored record counts per source.

        Importance: Shows how much each source has synced.
        Alternatives: Query the SQLite file directly.
        """

        return ctx.store.stats()

    return app


def create_app_from_env() -> FastAPI:
    """Build the app from environment configuration, for ``uvicorn --factory``."""

    return create_app(AppConfig.from_env())

"""Summary: Application factory wiring core services.

Importance: Builds one explicit context shared by the API and CLI instead of module singletons.
Alternatives: Instantiate services manually in each entrypoint.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping

from mybrain.ai import AiProvider, AiProviderFactory
from mybrain.aggregator import Aggregator
from mybrain.cache import StaleWhileRevalidate, SummaryCache
from mybrain.config import AppConfig
from mybrain.models import Source
from mybrain.providers.base import SourceAdapter
from mybrain.providers.chat import ChatAdapter, ChatClient, FixtureChatClient
from mybrain.providers.mail import FixtureMailClient, GmailApiClient, MailAdapter, MailClient
from mybrain.providers.workspace import (
    FixtureWorkspaceClient,
    NotionApiClient,
    WorkspaceAdapter,
    WorkspaceClient,
)
from mybrain.services import SummaryService
from mybrain.storage.sqlite_store import SqliteStore
from mybrain.summarizer import Summarizer
from mybrain.sync import IncrementalSyncEngine
from mybrain.tasks import BackgroundTasks, ErrorHook


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppContext:
    """Summary: Shared application context.

    Importance: Owns the store and background tasks, and closes them in order.
    Alternatives: Global service instances created at import time.
    """

    config: AppConfig
    store: SqliteStore
    tasks: BackgroundTasks
    engine: IncrementalSyncEngine
    swr: StaleWhileRevalidate
    summarizer: Summarizer
    adapters: dict[Source, SourceAdapter[Any]]
    summaries: SummaryService
    aggregator: Aggregator

    async def aclose(self) -> None:
        """Summary: Drain background work, then close the store.

        Importance: In-flight syncs and refreshes finish before their store goes away.
        Alternatives: Cancel pending tasks on shutdown.
        """

        await self.tasks.drain()
        self.store.close()


def build_clients(config: AppConfig, clock: Callable[[], float] = time.time) -> dict[Source, Any]:
    """Summary: Pick a client per source from configuration.

    Importance: API tokens win over local fixtures; a source with neither starts disconnected.
    Alternatives: Require explicit connect calls for every source.
    """

    clients: dict[Source, Any] = {}
    if config.chat_fixture_path and Path(config.chat_fixture_path).exists():
        clients[Source.CHAT] = FixtureChatClient(Path(config.chat_fixture_path), clock=clock)
    if config.gmail_access_token:
        clients[Source.MAIL] = GmailApiClient(config.gmail_access_token, config.gmail_api_base_url)
    elif config.mail_fixture_path and Path(config.mail_fixture_path).exists():
        clients[Source.MAIL] = FixtureMailClient(Path(config.mail_fixture_path), clock=clock)
    if config.notion_token:
        clients[Source.WORKSPACE] = NotionApiClient(
            config.notion_token, config.notion_api_base_url, config.notion_version
        )
    elif config.workspace_fixture_path and Path(config.workspace_fixture_path).exists():
        clients[Source.WORKSPACE] = FixtureWorkspaceClient(
            Path(config.workspace_fixture_path), clock=clock
        )
    return clients


def build_context(
    config: AppConfig,
    ai_provider: AiProvider | None = None,
    clients: Mapping[Source, Any] | None = None,
    clock: Callable[[], float] = time.time,
    on_error: ErrorHook | None = None,
) -> AppContext:
    """Summary: Build the application context from configuration.

    Importance: Tests inject AI providers, clients, clocks, and error hooks here.
    Alternatives: Use a dependency injection container.
    """

    store = SqliteStore(config.db_path)
    store.initialize()
    tasks = BackgroundTasks(on_error=on_error)
    engine = IncrementalSyncEngine(
        store,
        clock=clock,
        window_days=config.sync_window_days,
        incremental_fetch_limit=config.incremental_fetch_limit,
        full_fetch_limit=config.full_fetch_limit,
    )
    cache = SummaryCache(store, max_age_seconds=config.cache_max_age_seconds, clock=clock)
    swr = StaleWhileRevalidate(cache, tasks)
    summarizer = Summarizer(ai_provider or AiProviderFactory(config).build())
    selected = dict(build_clients(config, clock=clock) if clients is None else clients)

    chat_client: ChatClient | None = selected.get(Source.CHAT)
    mail_client: MailClient | None = selected.get(Source.MAIL)
    workspace_client: WorkspaceClient | None = selected.get(Source.WORKSPACE)
    adapters: dict[Source, SourceAdapter[Any]] = {
        Source.CHAT: ChatAdapter(
            store,
            engine,
            tasks,
            client=chat_client,
            container_cap=config.chat_container_cap,
            clock=clock,
        ),
        Source.MAIL: MailAdapter(store, engine, tasks, client=mail_client, clock=clock),
        Source.WORKSPACE: WorkspaceAdapter(store, engine, tasks, client=workspace_client, clock=clock),
    }
    logger.info(
        "Built context with sources: %s.",
        ", ".join(source.value for source, adapter in adapters.items() if adapter.is_connected)
        or "none connected",
    )
    return AppContext(
        config=config,
        store=store,
        tasks=tasks,
        engine=engine,
        swr=swr,
        summarizer=summarizer,
        adapters=adapters,
        summaries=SummaryService(adapters=adapters, summarizer=summarizer, swr=swr),
        aggregator=Aggregator(adapters, summarizer, swr),
    )

"""Service wiring — builds the store, storage, analyzer and poller from settings.

The API keeps one `Services` instance on `app.state.services`; tests
build their own with in-memory fakes.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx
import structlog

from furnicraft.analysis.analyzers import Analyzer, FlowiseAnalyzer, HeuristicAnalyzer
from furnicraft.analysis.orchestrator import UploadOrchestrator
from furnicraft.analysis.poller import AnalysisPoller
from furnicraft.config import Settings
from furnicraft.store.base import DesignStore
from furnicraft.store.memory import InMemoryDesignStore
from furnicraft.utils.flowise import FlowiseClient
from furnicraft.utils.storage import ImageStorage, build_storage

logger = structlog.get_logger()


@dataclass
class Services:
    settings: Settings
    store: DesignStore
    storage: ImageStorage
    flowise: FlowiseClient
    orchestrator: UploadOrchestrator
    poller: AnalysisPoller
    http: httpx.AsyncClient = field(repr=False)

    async def close(self) -> None:
        await self.http.aclose()
        dispose = getattr(self.store, "dispose", None)
        if dispose is not None:
            await dispose()


def _build_store(cfg: Settings) -> DesignStore:
    if cfg.use_database:
        from furnicraft.store.sql import SqlDesignStore

        return SqlDesignStore.from_url(cfg.database_url)
    logger.warning("database_disabled", hint="Set USE_DATABASE=true for Postgres")
    return InMemoryDesignStore()


def build_analyzer(cfg: Settings, flowise: FlowiseClient) -> Analyzer:
    if cfg.analysis_backend == "flowise":
        if not cfg.flowise_chatflow_id:
            raise ValueError("ANALYSIS_BACKEND=flowise requires FLOWISE_CHATFLOW_ID")
        return FlowiseAnalyzer(
            flowise,
            cfg.analysis_question,
            fallback_on_missing=cfg.fallback_on_missing_response,
        )
    return HeuristicAnalyzer()


def build_services(
    cfg: Settings,
    *,
    store: DesignStore | None = None,
    storage: ImageStorage | None = None,
    analyzer: Analyzer | None = None,
    http: httpx.AsyncClient | None = None,
) -> Services:
    http = http or httpx.AsyncClient()
    store = store or _build_store(cfg)
    storage = storage or build_storage(cfg)
    flowise = FlowiseClient(cfg, http)
    analyzer = analyzer or build_analyzer(cfg, flowise)

    return Services(
        settings=cfg,
        store=store,
        storage=storage,
        flowise=flowise,
        orchestrator=UploadOrchestrator(
            store, storage, analyzer, max_upload_bytes=cfg.max_upload_bytes
        ),
        poller=AnalysisPoller(
            store,
            initial_delay=cfg.poll_initial_delay_seconds,
            interval=cfg.poll_interval_seconds,
            max_attempts=cfg.poll_max_attempts,
        ),
        http=http,
    )

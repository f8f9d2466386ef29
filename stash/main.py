"""Stash background jobs & AI tier service - FastAPI application."""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stash.ai.catalog import ModelCatalogCache
from stash.ai.preferences import AIPreferences
from stash.ai.providers import ProviderClient
from stash.ai.resolver import TierResolver
from stash.api.v1 import ai as ai_api
from stash.api.v1 import health as health_api
from stash.api.v1 import imports as imports_api
from stash.api.v1 import jobs as jobs_api
from stash.api.v1.router import v1_router
from stash.config import Settings, settings
from stash.db.saves import SavesRepository, SupabaseSavesRepository
from stash.jobs.controller import JobLifecycleController
from stash.jobs.in_process_runner import InProcessJobRunner
from stash.jobs.store import JobStore
from stash.notifications import NotificationCenter
from stash.processors.base import ProcessorContext
from stash.storage.kv_store import FileKeyValueStore, KeyValueStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Process-wide service objects, built once per application session."""
    settings: Settings
    kv: KeyValueStore
    store: JobStore
    controller: JobLifecycleController
    runner: InProcessJobRunner
    catalog: ModelCatalogCache
    resolver: TierResolver
    preferences: AIPreferences
    ai_client: ProviderClient
    notifications: NotificationCenter
    processors: ProcessorContext


def build_services(
    config: Settings = settings,
    kv: Optional[KeyValueStore] = None,
    saves: Optional[SavesRepository] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> Services:
    """Assemble the services. Nothing is loaded or started here."""
    kv = kv or FileKeyValueStore(config.state_dir)
    store = JobStore(kv, max_jobs=config.max_jobs, retention_hours=config.job_retention_hours)
    controller = JobLifecycleController(store)
    runner = InProcessJobRunner(controller)
    ai_client = ProviderClient(
        client=http_client,
        claude_api_base=config.claude_api_base,
        openai_api_base=config.openai_api_base,
        timeout=config.provider_timeout_seconds,
    )
    catalog = ModelCatalogCache(kv, lister=ai_client)
    resolver = TierResolver(catalog)
    preferences = AIPreferences(kv, catalog, resolver, ai_client)
    notifications = NotificationCenter()
    processors = ProcessorContext(
        controller=controller,
        dispatcher=runner,
        saves=saves or SupabaseSavesRepository(),
        ai_client=ai_client,
        preferences=preferences,
        notifications=notifications,
    )
    return Services(
        settings=config,
        kv=kv,
        store=store,
        controller=controller,
        runner=runner,
        catalog=catalog,
        resolver=resolver,
        preferences=preferences,
        ai_client=ai_client,
        notifications=notifications,
        processors=processors,
    )


def wire_routers(services: Services) -> None:
    jobs_api.set_controller(services.controller)
    jobs_api.set_notifications(services.notifications)
    health_api.set_controller(services.controller)
    ai_api.set_resolver(services.resolver)
    ai_api.set_preferences(services.preferences)
    imports_api.set_context(
        services.processors,
        kindle_batch_size=services.settings.kindle_insert_batch_size,
        transcript_limit=services.settings.transcript_chunk_size,
    )


def create_app(services_factory=build_services) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown logic."""
        services = services_factory()
        app.state.services = services
        logging.basicConfig(
            level=services.settings.log_level.upper(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        logging.getLogger("stash").setLevel(services.settings.log_level.upper())
        logger.info("Starting Stash job service on port %s", services.settings.port)
        logger.info("State dir: %s", services.settings.state_dir)

        services.store.load()
        logger.info(
            "Loaded %d job(s) from history, next id %d",
            len(services.store.jobs), services.store.counter + 1,
        )

        if services.settings.catalog_refresh_on_startup:
            credentials = services.preferences.credentials()
            if credentials:
                services.catalog.start_background_refresh(credentials)
                logger.info("Refreshing model catalogs for %s", ", ".join(p.value for p in credentials))

        wire_routers(services)

        yield

        logger.info("Shutting down Stash job service")
        await services.runner.stop()
        refresh = services.catalog.background_refresh
        if refresh is not None and not refresh.done():
            refresh.cancel()

    app = FastAPI(
        title="Stash Job Service",
        description="Background job tracking and AI capability-tier resolution for Stash",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_api.router, tags=["health"])  # GET /health at root
    app.include_router(v1_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("stash.main:app", host="0.0.0.0", port=settings.port)

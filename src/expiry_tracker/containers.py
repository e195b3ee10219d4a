"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

import httpx
from supabase import create_client

from expiry_tracker.adapters.memory_store import (
    InMemoryBlobStore,
    InMemoryImageRepository,
    InMemorySessionRepository,
)
from expiry_tracker.adapters.openai_vision_client import OpenAIVisionClient
from expiry_tracker.adapters.supabase_blob_store import SupabaseBlobStore
from expiry_tracker.adapters.supabase_image_repository import (
    SupabaseImageRepository,
)
from expiry_tracker.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from expiry_tracker.client.api_client import HandoffApiClient, HttpxHandoffApiClient
from expiry_tracker.client.board import ImageBoard
from expiry_tracker.client.pipeline import BatchAnalysisPipeline
from expiry_tracker.client.polling import HandoffPoller
from expiry_tracker.config import ClientSettings, Settings, parse_store_backend
from expiry_tracker.services.handoff import HandoffCoordinator
from expiry_tracker.services.store import SessionStore
from expiry_tracker.services.sweeper import SessionSweeper
from expiry_tracker.services.uploads import UploadIngestor
from expiry_tracker.services.vision import ProductVisionService


@dataclass
class AppContainer:
    """Holds server-wide dependencies."""

    settings: Settings
    store: SessionStore
    handoff_coordinator: HandoffCoordinator
    upload_ingestor: UploadIngestor
    sweeper: SessionSweeper
    vision_service: ProductVisionService
    close_resources: Callable[[], Awaitable[None]]


@dataclass
class ClientContainer:
    """Holds primary-device dependencies."""

    settings: ClientSettings
    api_client: HandoffApiClient
    board: ImageBoard
    pipeline: BatchAnalysisPipeline
    poller: HandoffPoller
    close_resources: Callable[[], Awaitable[None]]


def build_store(settings: Settings) -> SessionStore:
    """Create the session store for the configured backend."""
    ttl = timedelta(seconds=settings.session_ttl_seconds)
    if parse_store_backend(settings.store_backend) == "supabase":
        if not settings.supabase_url or not settings.supabase_service_key:
            raise ValueError("Supabase backend requires URL and service key")
        supabase_client = create_client(
            settings.supabase_url, settings.supabase_service_key
        )
        return SessionStore(
            sessions=SupabaseSessionRepository(supabase_client),
            images=SupabaseImageRepository(supabase_client),
            blobs=SupabaseBlobStore(supabase_client, bucket=settings.supabase_bucket),
            ttl=ttl,
        )
    return SessionStore(
        sessions=InMemorySessionRepository(),
        images=InMemoryImageRepository(),
        blobs=InMemoryBlobStore(),
        ttl=ttl,
    )


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default server dependency container."""
    resolved_settings = settings or Settings()
    store = build_store(resolved_settings)
    handoff_coordinator = HandoffCoordinator(
        store=store, deep_link_base=resolved_settings.deep_link_base
    )
    upload_ingestor = UploadIngestor(store)
    sweeper = SessionSweeper(
        store=store, interval_seconds=resolved_settings.sweep_interval_seconds
    )
    openai_client = OpenAIVisionClient.create(resolved_settings.openai_api_key)
    vision_service = ProductVisionService(
        client=openai_client,
        model=resolved_settings.openai_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
    )

    async def close_resources() -> None:
        await sweeper.stop()
        await openai_client.close()

    return AppContainer(
        settings=resolved_settings,
        store=store,
        handoff_coordinator=handoff_coordinator,
        upload_ingestor=upload_ingestor,
        sweeper=sweeper,
        vision_service=vision_service,
        close_resources=close_resources,
    )


def build_client_container(
    settings: ClientSettings | None = None,
    open_link: Callable[[str], None] | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> ClientContainer:
    """Create the primary-device container talking to a handoff server."""
    resolved_settings = settings or ClientSettings()
    api_client = HttpxHandoffApiClient.create(
        base_url=resolved_settings.server_url,
        timeout=resolved_settings.request_timeout_seconds,
        http_client=http_client,
    )
    board = ImageBoard(batch_size_limit=resolved_settings.batch_size_limit)
    pipeline = BatchAnalysisPipeline(client=api_client, board=board)
    poller = HandoffPoller(
        api_client=api_client,
        board=board,
        pipeline=pipeline,
        interval_seconds=resolved_settings.poll_interval_seconds,
        max_attempts=resolved_settings.poll_max_attempts,
        open_link=open_link,
    )

    async def close_resources() -> None:
        poller.cancel()
        await pipeline.wait_idle()
        await api_client.close()

    return ClientContainer(
        settings=resolved_settings,
        api_client=api_client,
        board=board,
        pipeline=pipeline,
        poller=poller,
        close_resources=close_resources,
    )

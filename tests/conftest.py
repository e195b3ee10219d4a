"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta

import pytest

from expiry_tracker.adapters.memory_store import (
    InMemoryBlobStore,
    InMemoryImageRepository,
    InMemorySessionRepository,
)
from expiry_tracker.client.board import ImageBoard
from expiry_tracker.client.models import ImageFile, SessionSnapshot
from expiry_tracker.config import Settings
from expiry_tracker.containers import AppContainer
from expiry_tracker.domain.sessions import HandoffTicket
from expiry_tracker.domain.vision import ProductFields
from expiry_tracker.services.handoff import HandoffCoordinator
from expiry_tracker.services.store import SessionStore
from expiry_tracker.services.sweeper import SessionSweeper
from expiry_tracker.services.uploads import UploadIngestor
from expiry_tracker.services.vision import ProductVisionService, VisionClient

TODAY = date(2024, 1, 1)
JPEG_BYTES = b"\xff\xd8\xff\xe0fake-jpeg"


@dataclass
class MutableClock:
    """Clock whose current time tests can move forward."""

    now: datetime = field(
        default_factory=lambda: datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
    )

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@dataclass
class FakeVisionClient(VisionClient):
    """Fake vision client returning fixed payloads."""

    payload: dict[str, object] = field(
        default_factory=lambda: {"product": "Greek Yogurt", "expiry_date": "2024-01-20"}
    )
    text: str = "EXP 2024-01-20"
    error: Exception | None = None
    prompts: list[str] = field(default_factory=list)
    data_urls: list[str] = field(default_factory=list)

    async def extract(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        image_data_url: str,
        schema: dict[str, object],
        prompt: str,
    ) -> dict[str, object]:
        self.prompts.append(prompt)
        self.data_urls.append(image_data_url)
        if self.error is not None:
            raise self.error
        return self.payload

    async def extract_text(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        image_data_url: str,
        prompt: str,
    ) -> str:
        self.prompts.append(prompt)
        self.data_urls.append(image_data_url)
        if self.error is not None:
            raise self.error
        return self.text


@dataclass
class FakeHandoffApiClient:
    """Scripted handoff server for client-side tests.

    ``snapshots`` are returned by successive ``get_session`` calls; once they
    run out the session keeps reporting no images. Entries may also be
    exceptions, which are raised instead.
    """

    session_id: str = "a" * 32
    snapshots: list[SessionSnapshot | Exception] = field(default_factory=list)
    fields: dict[str, ProductFields | Exception] = field(default_factory=dict)
    texts: dict[str, str | Exception] = field(default_factory=dict)
    start_error: Exception | None = None
    gate: asyncio.Event | None = None
    poll_gate: asyncio.Event | None = None
    poll_calls: int = 0
    field_calls: list[tuple[str, str, str]] = field(default_factory=list)
    closed: bool = False

    async def start_handoff(self) -> HandoffTicket:
        if self.start_error is not None:
            raise self.start_error
        return HandoffTicket(
            session_id=self.session_id,
            deep_link=f"expiryapp://camera?session={self.session_id}",
        )

    async def get_session(self, session_id: str) -> SessionSnapshot:
        self.poll_calls += 1
        if self.poll_gate is not None:
            await self.poll_gate.wait()
        if self.snapshots:
            next_snapshot = self.snapshots.pop(0)
            if isinstance(next_snapshot, Exception):
                raise next_snapshot
            return next_snapshot
        return SessionSnapshot(session_id=session_id, image_count=0)

    async def extract_fields(
        self, image: ImageFile, hint_product: str, hint_date: str
    ) -> ProductFields:
        self.field_calls.append((image.filename, hint_product, hint_date))
        if self.gate is not None:
            await self.gate.wait()
        outcome = self.fields.get(image.filename, ProductFields())
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def extract_text(self, image: ImageFile) -> str:
        outcome = self.texts.get(image.filename, "")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def close(self) -> None:
        self.closed = True


def make_image(name: str, data: bytes = JPEG_BYTES) -> ImageFile:
    return ImageFile(filename=name, content_type="image/jpeg", data=data)


def make_snapshot(session_id: str, *names: str) -> SessionSnapshot:
    images = tuple(make_image(name) for name in names)
    return SessionSnapshot(
        session_id=session_id, image_count=len(images), images=images
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openai_api_key="openai-key",
        admin_token="admin-token",
        store_backend="memory",
        environment="test",
    )


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def store(clock: MutableClock) -> SessionStore:
    return SessionStore(
        sessions=InMemorySessionRepository(),
        images=InMemoryImageRepository(),
        blobs=InMemoryBlobStore(),
        ttl=timedelta(hours=1),
        clock=clock,
    )


@pytest.fixture
def vision_client() -> FakeVisionClient:
    return FakeVisionClient()


@pytest.fixture
def container(
    settings: Settings, store: SessionStore, vision_client: FakeVisionClient
) -> AppContainer:
    sweeper = SessionSweeper(store=store, interval_seconds=3600)
    vision_service = ProductVisionService(
        client=vision_client,
        model=settings.openai_model,
        reasoning_effort=settings.openai_reasoning_effort,
        store=settings.openai_store,
    )

    async def close_resources() -> None:
        await sweeper.stop()

    return AppContainer(
        settings=settings,
        store=store,
        handoff_coordinator=HandoffCoordinator(
            store=store, deep_link_base=settings.deep_link_base
        ),
        upload_ingestor=UploadIngestor(store),
        sweeper=sweeper,
        vision_service=vision_service,
        close_resources=close_resources,
    )


@pytest.fixture
def board() -> ImageBoard:
    return ImageBoard(batch_size_limit=10, today=lambda: TODAY)


@pytest.fixture
def api_client() -> FakeHandoffApiClient:
    return FakeHandoffApiClient()

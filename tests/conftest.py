"""Shared fixtures: fake media backend, lessons, in-memory stores, API client."""

import asyncio
import os

import pytest


# Settings are cached on first use; pin them before the app is imported
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("CASSANDRA_ENABLED", "false")
os.environ.setdefault("LOG_REQUESTS", "false")

from fastapi.testclient import TestClient  # noqa: E402

from lesson_viewer.core.errors import MediaBackendError  # noqa: E402
from lesson_viewer.progress.memory import (  # noqa: E402
    InMemoryEnrollmentGateway,
    InMemoryLessonCatalog,
    InMemoryProgressStore,
)
from lesson_viewer.progress.models import Lesson  # noqa: E402
from lesson_viewer.viewer.session import ViewerSessionRegistry  # noqa: E402


# ==============================================================================
# Fake media backend
# ==============================================================================


class FakeHandle:
    """Decode session double recording loads and disposal."""

    def __init__(self, backend: "FakeBackend", media_ref: str) -> None:
        self.backend = backend
        self.media_ref = media_ref
        self.initialized = backend.initialize_on_create
        self.disposed = False
        self.dispose_calls = 0
        self.loads: list[str] = []

    async def load(self, media_ref: str) -> bool:
        self.loads.append(media_ref)
        if self.backend.load_gate is not None:
            await self.backend.load_gate.wait()
        if self.backend.load_raises:
            raise RuntimeError("decoder crashed")
        if media_ref in self.backend.fail_load:
            return False
        self.media_ref = media_ref
        return True

    def is_initialized(self) -> bool:
        return self.initialized and not self.disposed

    def dispose(self) -> None:
        self.dispose_calls += 1
        self.disposed = True


class FakeBackend:
    """MediaBackend double with scriptable failures and gates."""

    def __init__(self) -> None:
        self.handles: list[FakeHandle] = []
        self.fail_create: set[str] = set()
        self.fail_load: set[str] = set()
        self.load_raises = False
        self.initialize_on_create = True
        self.create_gate: asyncio.Event | None = None
        self.load_gate: asyncio.Event | None = None

    async def create(self, media_ref: str) -> FakeHandle:
        if self.create_gate is not None:
            await self.create_gate.wait()
        if media_ref in self.fail_create:
            raise MediaBackendError(f"Video file not found: {media_ref}")
        handle = FakeHandle(self, media_ref)
        self.handles.append(handle)
        return handle

    @property
    def created(self) -> int:
        return len(self.handles)

    @property
    def live_handles(self) -> list[FakeHandle]:
        return [handle for handle in self.handles if not handle.disposed]


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


# ==============================================================================
# Lessons and stores
# ==============================================================================

COURSE_ID = 10
USER_ID = 7


@pytest.fixture
def lessons() -> list[Lesson]:
    """Three lessons: two videos and a text-only lesson."""
    return [
        Lesson(id=1, course_id=COURSE_ID, position=1, title="Intro", media_ref="a.mp4"),
        Lesson(id=2, course_id=COURSE_ID, position=2, title="Basics", media_ref="b.mp4"),
        Lesson(id=3, course_id=COURSE_ID, position=3, title="Reading", media_ref=None),
    ]


@pytest.fixture
def catalog(lessons: list[Lesson]) -> InMemoryLessonCatalog:
    return InMemoryLessonCatalog(lessons)


@pytest.fixture
def store() -> InMemoryProgressStore:
    return InMemoryProgressStore()


@pytest.fixture
def gateway(
    catalog: InMemoryLessonCatalog, store: InMemoryProgressStore
) -> InMemoryEnrollmentGateway:
    return InMemoryEnrollmentGateway(catalog, store, {(USER_ID, COURSE_ID)})


@pytest.fixture
def registry(
    store: InMemoryProgressStore,
    gateway: InMemoryEnrollmentGateway,
    catalog: InMemoryLessonCatalog,
    backend: FakeBackend,
) -> ViewerSessionRegistry:
    return ViewerSessionRegistry(
        store=store,
        gateway=gateway,
        catalog=catalog,
        backend_factory=lambda: backend,
        max_sessions=4,
    )


# ==============================================================================
# API client
# ==============================================================================


@pytest.fixture
def client(registry: ViewerSessionRegistry):
    """Test client with the in-memory registry installed on app state."""
    from lesson_viewer.main import app

    app.state.viewer_registry = registry
    app.state.storage_backend = "memory"
    with TestClient(app, raise_server_exceptions=False) as test_client:
        # The lifespan installs its own registry; put the test one back
        app.state.viewer_registry = registry
        yield test_client
    app.state.viewer_registry = None

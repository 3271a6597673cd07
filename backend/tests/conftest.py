"""Pytest configuration and fixtures for activation sync tests.

Provides a controllable clock, in-memory cache stores, a scriptable fake
activation service (served through httpx.MockTransport), and an HTTP
client for the reference FastAPI app.
"""

import asyncio
import json
import re
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from activation.auth.jwt import create_access_token
from activation.config import settings
from activation.main import app
from activation.schemas.profile import DocumentType, RemoteProfile
from activation.schemas.steps import parse_step
from activation.services.mapper import progress
from activation.services.profile_store import ProfileStore, get_profile_store
from activation.services.remote import (
    DOCUMENTS_PATH,
    PROFILE_PATH,
    UPLOAD_PATH,
    RemoteSyncClient,
)
from activation.state import ActivationStateContainer
from activation.utils.cache import LocalDurableCache, MemoryStore

START_TIME = 1_700_000_000.0  # 2023-11-14T22:13:20Z


# ── Clock / cache ────────────────────────────────────────────────

class FakeClock:
    """Callable stand-in for time.time()."""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, hours: float = 0, seconds: float = 0) -> None:
        self.now += hours * 3600 + seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def local_cache(memory_store: MemoryStore, clock: FakeClock) -> LocalDurableCache:
    return LocalDurableCache(store=memory_store, clock=clock)


# ── Fake activation service ──────────────────────────────────────

def _error(status_code: int, code: str, message: str) -> httpx.Response:
    return httpx.Response(
        status_code, json={"error": {"code": code, "message": message, "details": None}}
    )


def _cookie(request: httpx.Request, name: str) -> str | None:
    for part in request.headers.get("cookie", "").split(";"):
        key, _, value = part.strip().partition("=")
        if key == name and value:
            return value
    return None


def _form_value(body: bytes, name: str) -> str | None:
    match = re.search(rb'name="' + name.encode() + rb'"\r\n\r\n([^\r]*)', body)
    return match.group(1).decode() if match else None


class FakeActivationService:
    """Scriptable stand-in for the activation service.

    The `auth-token` cookie value is taken as the user id. Profiles are
    kept in a ProfileStore so step merges behave like the reference app.
    """

    def __init__(self):
        self.store = ProfileStore()
        self.fail_reads = False
        self.fail_writes = False
        self.fail_uploads: set[str] = set()
        self.write_gate: asyncio.Event | None = None
        # user id → event a profile GET for that user waits on
        self.read_gates: dict[str, asyncio.Event] = {}
        self.requests: list[httpx.Request] = []

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def seed(self, user_id: str, step: int, data: dict) -> None:
        self.store.save_step(user_id, step, parse_step(step, data))

    def seed_profile(self, user_id: str, **fields) -> RemoteProfile:
        return self.store.put_profile(RemoteProfile(id=f"profile-{user_id}", user_id=user_id, **fields))

    @property
    def step_writes(self) -> list[dict]:
        return [
            json.loads(r.content)
            for r in self.requests
            if r.method == "POST" and r.url.path == PROFILE_PATH
        ]

    @property
    def uploads(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == UPLOAD_PATH]

    @property
    def reads(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "GET" and r.url.path == PROFILE_PATH]

    def documents_of(self, user_id: str) -> list[DocumentType]:
        return [d.document_type for d in self.store.list_documents(user_id)]

    async def wait_for_reads(self, count: int) -> None:
        while len(self.reads) < count:
            await asyncio.sleep(0)

    def _profile_body(self, user_id: str) -> dict:
        profile = self.store.get_profile(user_id)
        return {
            "profile": profile.model_dump(mode="json", by_alias=True) if profile else None,
            "progress": progress(profile),
            "isComplete": profile is not None and profile.activation_status == "completed",
        }

    async def handler(self, request: httpx.Request) -> httpx.Response:
        await request.aread()
        self.requests.append(request)

        user_id = _cookie(request, settings.auth_cookie_name)
        if user_id is None:
            return _error(401, "UNAUTHORIZED", "No authentication token found")

        path = request.url.path
        if path == PROFILE_PATH and request.method == "GET":
            if user_id in self.read_gates:
                await self.read_gates[user_id].wait()
            if self.fail_reads:
                return _error(503, "SERVICE_UNAVAILABLE", "Activation service unavailable")
            body = self._profile_body(user_id)
            body["documents"] = [
                d.summary().model_dump(by_alias=True) for d in self.store.list_documents(user_id)
            ]
            return httpx.Response(200, json=body)

        if path == PROFILE_PATH and request.method == "POST":
            if self.write_gate is not None:
                await self.write_gate.wait()
            if self.fail_writes:
                return _error(500, "INTERNAL_ERROR", "Failed to save activation data")
            payload = json.loads(request.content)
            step = payload["step"]
            self.store.save_step(user_id, step, parse_step(step, payload["data"]))
            body = self._profile_body(user_id)
            body["message"] = f"Step {step} saved"
            return httpx.Response(200, json=body)

        if path == UPLOAD_PATH:
            document_type = _form_value(request.content, "documentType")
            if document_type in self.fail_uploads:
                return _error(400, "INVALID_FILE_TYPE", "Invalid file type")
            document = self.store.add_document(
                user_id,
                DocumentType(document_type),
                filename=document_type,
                mime_type="image/png",
                content=request.content,
            )
            return httpx.Response(
                200,
                json={
                    "message": "Document uploaded successfully",
                    "document": document.summary().model_dump(by_alias=True),
                },
            )

        if path == DOCUMENTS_PATH:
            return httpx.Response(
                200,
                json={
                    "documents": [
                        d.summary().model_dump(by_alias=True)
                        for d in self.store.list_documents(user_id)
                    ]
                },
            )

        return _error(404, "NOT_FOUND", "Not found")


@pytest.fixture
def fake_service() -> FakeActivationService:
    return FakeActivationService()


@pytest_asyncio.fixture
async def remote_client(fake_service: FakeActivationService) -> AsyncGenerator[RemoteSyncClient, None]:
    """Sync client signed in as user-1 against the fake service."""
    http = AsyncClient(transport=fake_service.transport(), base_url="http://activation.test")
    yield RemoteSyncClient(token="user-1", client=http)
    await http.aclose()


@pytest_asyncio.fixture
async def container(
    remote_client: RemoteSyncClient,
    local_cache: LocalDurableCache,
) -> AsyncGenerator[ActivationStateContainer, None]:
    state = ActivationStateContainer(client=remote_client, cache=local_cache)
    yield state
    await state.queue.cancel_all()


# ── Reference service ────────────────────────────────────────────

@pytest.fixture
def profile_store() -> ProfileStore:
    store = ProfileStore()
    app.dependency_overrides[get_profile_store] = lambda: store
    yield store
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(profile_store: ProfileStore) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the reference app with a fresh profile store."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def test_token() -> str:
    return create_access_token(user_id="user-1")


@pytest.fixture
def auth_headers(test_token: str) -> dict:
    return {"Authorization": f"Bearer {test_token}"}


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "api: Reference service endpoint tests")
    config.addinivalue_line("markers", "cache: Local durable cache tests")

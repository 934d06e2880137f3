"""Shared test fixtures and configuration for the test suite."""

from dataclasses import dataclass, field
from typing import Any, Dict, Generator, List, Optional, Tuple
from unittest.mock import MagicMock, patch

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from fastapi.testclient import TestClient

from eden_portal.config import Settings
from eden_portal.deps import get_client
from eden_portal.main import create_app
from eden_portal.models.session import Session
from eden_portal.services.eden_client import EdenClient


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Create test settings with a temporary log directory and no poll delay."""
    return Settings(
        eden_api_base="http://eden.test",
        eden_api_key="test-api-key",
        eden_agent_id="agent-1",
        task_poll_interval=0,
        session_poll_interval=0,
        telegram_bot_token="123456789:test-bot-token",
        log_level="DEBUG",
        log_dir=tmp_path / "logs",
        environment="test",
    )


@pytest.fixture
def mock_eden_client(test_settings) -> MagicMock:
    """Eden client whose coroutine methods are AsyncMocks."""
    client = MagicMock(spec=EdenClient)
    client.settings = test_settings
    return client


@pytest.fixture
def client(test_settings, mock_eden_client) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app backed by the mock Eden client."""
    with patch("eden_portal.main.get_settings", return_value=test_settings):
        app = create_app()
        app.dependency_overrides[get_client] = lambda: mock_eden_client
        with TestClient(app) as test_client:
            yield test_client


@dataclass
class RecordedRequest:
    method: str
    path: str
    query: List[Tuple[str, str]]
    headers: Any
    json: Optional[Any] = None


@dataclass
class EdenStub:
    """In-process stand-in for the Eden API.

    Responses are queued per ``(method, path)``; the last queued response
    repeats. Unknown routes answer 404.
    """

    responses: Dict[Tuple[str, str], List[Tuple[int, Any]]] = field(default_factory=dict)
    requests: List[RecordedRequest] = field(default_factory=list)
    base_url: str = ""

    def add(self, method: str, path: str, *payloads: Any, status: int = 200) -> None:
        queue = self.responses.setdefault((method, path), [])
        queue.extend((status, payload) for payload in payloads)

    def requests_to(self, path: str) -> List[RecordedRequest]:
        return [request for request in self.requests if request.path == path]

    async def handle(self, request: web.Request) -> web.StreamResponse:
        body = await request.json() if request.can_read_body else None
        self.requests.append(
            RecordedRequest(
                method=request.method,
                path=request.path,
                query=list(request.query.items()),
                headers=request.headers.copy(),
                json=body,
            )
        )

        queue = self.responses.get((request.method, request.path))
        if not queue:
            return web.json_response({"message": "Not found"}, status=404)

        status, payload = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(payload, str):
            return web.Response(status=status, text=payload)
        return web.json_response(payload, status=status)

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_route("*", "/{tail:.*}", self.handle)
        return app


@pytest.fixture
async def eden_stub():
    """Start the stub Eden API on a local port."""
    stub = EdenStub()
    server = TestServer(stub.make_app())
    await server.start_server()
    stub.base_url = str(server.make_url("/")).rstrip("/")
    yield stub
    await server.close()


@pytest.fixture
async def eden_client(eden_stub, test_settings):
    """Real Eden client pointed at the stub API."""
    settings = test_settings.model_copy(update={"eden_api_base": eden_stub.base_url})
    eden_client = EdenClient(settings)
    yield eden_client
    await eden_client.close()


# Test data helpers
def assistant_message(message_id: str, content: str = "", finish_reason: Optional[str] = None, **extra) -> Dict[str, Any]:
    """Assistant message document as Eden returns it."""
    return {
        "_id": message_id,
        "role": "assistant",
        "content": content,
        "finish_reason": finish_reason,
        **extra,
    }


def user_message(message_id: str, content: str = "hello") -> Dict[str, Any]:
    return {"_id": message_id, "role": "user", "content": content}


def make_session(messages: List[Dict[str, Any]], session_id: str = "s1", **extra) -> Session:
    return Session.model_validate({"_id": session_id, "messages": messages, **extra})


@pytest.fixture
def sample_agent_doc() -> Dict[str, Any]:
    return {
        "_id": "agent-1",
        "name": "Banny",
        "description": "Creative helper",
        "userImage": "https://cdn.test/banny.png",
        "greeting": "Hi there!",
    }


@pytest.fixture
def sample_creation_doc() -> Dict[str, Any]:
    return {
        "_id": "c1",
        "uri": "https://cdn.test/c1.png",
        "thumbnail": "https://cdn.test/c1-thumb.png",
        "mediaAttributes": {"mimeType": "image/png", "width": 1024, "height": 1024},
        "prompt": "a red fox",
    }

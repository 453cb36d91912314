import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Tuple

import httpx
import pytest
from typer.testing import CliRunner

from basincli.infrastructure.auth.credential_source import CredentialSource
from basincli.infrastructure.config import settings
from basincli.infrastructure.http.request_executor import RequestExecutor
from basincli.infrastructure.resilience.api_retry import ApiRetryService

BASE_URL = "https://api.test.databasin.co"
TEST_TOKEN = "test-token-123"


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path: Path):
    """Keeps tests away from the user's config, .env and token files."""
    for key in list(os.environ):
        if key.startswith("DATABASIN_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("DATABASIN_CONFIG_PATH", str(tmp_path / "config.yaml"))
    monkeypatch.chdir(tmp_path)
    settings.reset_configuration()
    settings.clear_test_config()
    yield
    settings.reset_configuration()
    settings.clear_test_config()


@pytest.fixture
def credentials(tmp_path: Path) -> CredentialSource:
    """Credential source that only sees an injected environment."""
    return CredentialSource(
        project_dir=tmp_path,
        user_token_path=tmp_path / "home" / ".token",
        environ={"DATABASIN_TOKEN": TEST_TOKEN},
    )


class FakeApi:
    """Route table for httpx.MockTransport that records every request.

    Routes map (method, path) to a response or a callable taking the
    request. A list of responses is consumed one per call.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Any] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, response: Any) -> "FakeApi":
        self.routes[(method.upper(), path)] = response
        return self

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method.upper() and r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": f"No route for {request.method} {request.url.path}"})
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        if callable(route):
            return route(request)
        return route

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def make_executor(credentials: CredentialSource) -> Callable[..., RequestExecutor]:
    """Builds executors over a MockTransport with a no-wait retry service."""

    async def no_sleep(_delay: float) -> None:
        return None

    def factory(handler, retries: int = 0, retry_delay: float = 0.5, events=None, **kwargs) -> RequestExecutor:
        dispatch = events.append if events is not None else (lambda _event: None)
        retry_service = ApiRetryService(
            max_retries=retries, retry_delay_s=retry_delay, sleep=kwargs.pop("sleep", no_sleep), dispatch_event=dispatch,
        )
        return RequestExecutor(
            BASE_URL,
            kwargs.pop("credentials", credentials),
            retry_service=retry_service,
            transport=httpx.MockTransport(handler),
            dispatch_event=dispatch,
            **kwargs,
        )

    return factory

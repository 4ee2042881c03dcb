"""Shared fixtures for the mockproxy test suite."""

import json
from pathlib import Path
from typing import Any, Callable, Optional

import pytest

from mockproxy.core.models import InboundRequest
from mockproxy.services.fixture_store import FixtureStore

UPSTREAM = "http://upstream.test"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep a developer's MOCKPROXY_* environment out of the tests."""
    for name in (
        "MOCKPROXY_UPSTREAM", "MOCKPROXY_FIXTURES", "MOCKPROXY_PORT",
        "MOCKPROXY_PROXY_TIMEOUT", "MOCKPROXY_RECORD", "MOCKPROXY_HOST",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fixture_root(tmp_path: Path) -> Path:
    root = tmp_path / "mocks"
    root.mkdir()
    return root


@pytest.fixture
def store(fixture_root: Path) -> FixtureStore:
    return FixtureStore(str(fixture_root))


@pytest.fixture
def write_fixture(fixture_root: Path) -> Callable[[str, Any], Path]:
    """write_fixture("public/items.data.raw", b"..."); dicts are written as JSON."""

    def _write(relative: str, content: Any) -> Path:
        path = fixture_root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, (dict, list)):
            content = json.dumps(content)
        if isinstance(content, str):
            content = content.encode("utf-8")
        path.write_bytes(content)
        return path

    return _write


def make_request(
    method: str = "GET",
    path: str = "/",
    body: Any = None,
    headers: Optional[dict] = None,
    query: str = "",
    authorized: bool = False,
) -> InboundRequest:
    headers = dict(headers or {})
    if authorized:
        headers["Authorization"] = "Bearer token"
    raw_body = b""
    if isinstance(body, (dict, list)):
        raw_body = json.dumps(body).encode("utf-8")
    elif isinstance(body, str):
        raw_body = body.encode("utf-8")
    return InboundRequest(method=method, path=path, query=query, headers=headers, body=body, raw_body=raw_body)


@pytest.fixture
def request_factory() -> Callable[..., InboundRequest]:
    return make_request

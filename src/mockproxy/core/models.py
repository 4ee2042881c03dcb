"""
Core Models
===========
Plain data types shared by the fixture store, the proxy forwarder and the
dispatcher. Nothing in here knows about FastAPI or httpx, so the whole core
can be driven from tests with hand-built requests.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ArtifactType(str, Enum):
    DATA = "data"
    HEADERS = "headers"
    FUNC = "func"
    REQUEST_BODY = "request"


# Extension written after the artifact type in a fixture filename
ARTIFACT_EXTENSIONS: Dict[ArtifactType, str] = {
    ArtifactType.DATA: "raw",
    ArtifactType.HEADERS: "json",
    ArtifactType.FUNC: "json",
    ArtifactType.REQUEST_BODY: "json",
}


class Namespace(str, Enum):
    PRIVATE = "private"
    PUBLIC = "public"


class ServingMode(str, Enum):
    FULL_PROXY = "FULL_PROXY"
    MOCK_FIRST = "MOCK_FIRST"
    PROXY_FIRST = "PROXY_FIRST"
    FULL_MOCK = "FULL_MOCK"

    @property
    def uses_proxy(self) -> bool:
        return self is not ServingMode.FULL_MOCK


# ── Response constants ──
MOCK_FAIL_STATUS = 504
MOCK_FAIL_BODY = b"Mock data fail"
PROXY_TIMEOUT_STATUS = 504
PROXY_ERROR_STATUS = 502

DEFAULT_HEADERS: Dict[str, Any] = {
    "status": 200,
    "Content-Type": "application/json",
}


@dataclass(frozen=True)
class FixtureKey:
    """
    Deterministic storage identifier for one fixture artifact.

    `body_hash` is only set when the originating request carried a non-empty
    body, so two requests that differ only by payload land in different files
    while body-less requests share the generic one.
    """

    artifact_type: ArtifactType
    logical_path: str
    body_hash: Optional[str] = None

    @property
    def filename(self) -> str:
        ext = ARTIFACT_EXTENSIONS[self.artifact_type]
        if self.body_hash:
            return f"{self.logical_path}.{self.artifact_type.value}.{self.body_hash}.{ext}"
        return f"{self.logical_path}.{self.artifact_type.value}.{ext}"

    def generic(self) -> "FixtureKey":
        return FixtureKey(self.artifact_type, self.logical_path)


@dataclass
class InboundRequest:
    """A transport-independent view of one client request."""

    method: str
    path: str
    query: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    raw_body: bytes = b""

    def __post_init__(self):
        self.method = self.method.upper()
        # Header names are case-insensitive; keep one canonical spelling
        self.headers = {k.lower(): v for k, v in self.headers.items()}

    @property
    def logical_path(self) -> str:
        return f"{self.path}?{self.query}" if self.query else self.path

    @property
    def is_authorized(self) -> bool:
        return "authorization" in self.headers


@dataclass
class ResponseEnvelope:
    """
    Headers plus body for one reply.

    `headers` may carry a `status` entry, the same convention the headers
    fixtures use on disk. `synthetic` marks the "no fixture" reply and `error`
    is set when the envelope describes a failed proxy call. `source` only
    feeds the request log.
    """

    headers: Dict[str, Any]
    body: bytes = b""
    synthetic: bool = False
    error: Optional[str] = None
    source: str = "Mock"

    @property
    def status(self) -> int:
        merged = {**DEFAULT_HEADERS, **self.headers}
        try:
            return int(merged["status"])
        except (TypeError, ValueError):
            return DEFAULT_HEADERS["status"]

    @property
    def ok(self) -> bool:
        return not self.synthetic and self.error is None

    def emitted_headers(self) -> Dict[str, str]:
        """Default headers overlaid by ours, `status` dropped, names lower-cased."""
        merged = {**DEFAULT_HEADERS, **self.headers}
        merged.pop("status", None)
        emitted = {str(k).lower(): str(v) for k, v in merged.items()}
        # Framing is recomputed for the body actually sent
        emitted.pop("content-length", None)
        emitted.pop("transfer-encoding", None)
        return emitted

    @classmethod
    def mock_fail(cls) -> "ResponseEnvelope":
        return cls(
            headers={"status": MOCK_FAIL_STATUS, "content-type": "text/plain"},
            body=MOCK_FAIL_BODY,
            synthetic=True,
        )

"""
Proxy Service
=============
Forwards a request to the upstream target and turns the outcome into a
response envelope.

  success  → upstream headers + {"status": <code>}, optionally recorded as fixtures
  timeout  → 504 error envelope, counted toward the circuit breaker
  other    → 502 error envelope, not counted
"""

import json
import logging
from typing import Dict, Optional

import httpx

from mockproxy.core.models import (
    PROXY_ERROR_STATUS, PROXY_TIMEOUT_STATUS, InboundRequest, ResponseEnvelope
)
from mockproxy.core.state import ModeController
from mockproxy.services.fixture_store import FixtureStore

logger = logging.getLogger("mockproxy")

# Never forwarded upstream: httpx sets them for the outgoing request itself
REQUEST_HEADERS_DROPPED = {"host", "content-length", "transfer-encoding", "connection"}

# Never replayed downstream: httpx has already decoded and de-chunked the body
RESPONSE_HEADERS_DROPPED = {"content-encoding", "content-length", "transfer-encoding", "connection"}


def encode_body(request: InboundRequest) -> Optional[bytes]:
    """
    GET carries no body, nor does a request that arrived without one.
    Structured bodies go out as JSON, text as-is.
    """
    if request.method == "GET":
        return None
    body = request.body
    if isinstance(body, (dict, list)):
        return json.dumps(body).encode("utf-8")
    if isinstance(body, str):
        return body.encode("utf-8")
    return request.raw_body or None


def error_envelope(status: int, error: str) -> ResponseEnvelope:
    return ResponseEnvelope(
        headers={"status": status, "content-type": "application/json"},
        body=json.dumps({"error": error}).encode("utf-8"),
        error=error,
        source="Proxy",
    )


class ProxyForwarder:
    def __init__(
        self,
        upstream_url: str,
        controller: ModeController,
        timeout_seconds: float = 10.0,
        store: Optional[FixtureStore] = None,
        capture_enabled: bool = False,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.upstream_url = upstream_url.rstrip("/")
        self.controller = controller
        self.timeout_seconds = timeout_seconds
        self.store = store
        self.capture_enabled = capture_enabled and store is not None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds, follow_redirects=False)

    async def aclose(self):
        await self._client.aclose()

    async def forward(self, request: InboundRequest) -> ResponseEnvelope:
        url = f"{self.upstream_url}{request.logical_path}"
        headers = {k: v for k, v in request.headers.items() if k not in REQUEST_HEADERS_DROPPED}
        content = encode_body(request)

        logger.info(f" --> [Proxy] request {request.method} {url}")
        if content is not None:
            logger.debug(f" --> [Proxy] {request.method} data {content[:200]!r}")

        try:
            response = await self._client.request(
                method=request.method,
                url=url,
                headers=headers,
                content=content,
                timeout=self.timeout_seconds,
            )
        except httpx.TimeoutException as e:
            logger.warning(f" --> [ProxyError] timeout ({type(e).__name__}) for {url}")
            await self.controller.record_timeout()
            return error_envelope(PROXY_TIMEOUT_STATUS, "timeout")
        except httpx.HTTPError as e:
            error = type(e).__name__
            logger.warning(f" --> [ProxyError] {error} for {url}: {e}")
            return error_envelope(PROXY_ERROR_STATUS, error)

        full_headers: Dict = {
            k: v for k, v in response.headers.items() if k.lower() not in RESPONSE_HEADERS_DROPPED
        }
        full_headers["status"] = response.status_code

        if self.capture_enabled and response.status_code == 200:
            await self.store.capture(request, full_headers, response.content)

        return ResponseEnvelope(headers=full_headers, body=response.content, source="Proxy")

"""
Dispatcher
==========
Decides, per request, in which order the fixture store and the proxy are
consulted. The serving mode is read once when the request arrives; a breaker
trip during this request only affects the requests that come after it.

  FULL_PROXY   proxy result, success or error
  MOCK_FIRST   fixture if present, otherwise proxy result
  PROXY_FIRST  proxy first, then fixture if present, otherwise nothing
  FULL_MOCK    fixture, or the synthetic 504 when there is none
"""

import logging
from typing import Optional

from mockproxy.core.models import InboundRequest, ResponseEnvelope, ServingMode
from mockproxy.core.state import ModeController
from mockproxy.services.fixture_store import FixtureStore
from mockproxy.services.proxy import ProxyForwarder

logger = logging.getLogger("mockproxy")


class Dispatcher:
    def __init__(
        self,
        controller: ModeController,
        store: Optional[FixtureStore] = None,
        forwarder: Optional[ProxyForwarder] = None,
        proxy_first_passthrough: bool = False,
    ):
        self.controller = controller
        self.store = store
        self.forwarder = forwarder
        self.proxy_first_passthrough = proxy_first_passthrough

    async def _mock(self, request: InboundRequest) -> ResponseEnvelope:
        if self.store is None:
            return ResponseEnvelope.mock_fail()
        return await self.store.load_response(request)

    async def _proxy(self, request: InboundRequest) -> Optional[ResponseEnvelope]:
        if self.forwarder is None:
            return None
        return await self.forwarder.forward(request)

    async def handle(self, request: InboundRequest) -> Optional[ResponseEnvelope]:
        """
        Produce the reply for one request.

        Returns None only in PROXY_FIRST mode when no fixture exists (and
        passthrough is off): the proxy's own result is not served there.
        """
        mode = self.controller.mode

        if mode is ServingMode.FULL_PROXY:
            return await self._proxy(request) or ResponseEnvelope.mock_fail()

        if mode is ServingMode.MOCK_FIRST:
            mocked = await self._mock(request)
            if not mocked.synthetic:
                return mocked
            logger.info(" --> [Proxy] fallback to proxy")
            return await self._proxy(request) or mocked

        if mode is ServingMode.PROXY_FIRST:
            proxied = await self._proxy(request)
            if self.proxy_first_passthrough and proxied is not None and proxied.ok:
                return proxied
            mocked = await self._mock(request)
            if not mocked.synthetic:
                return mocked
            if self.proxy_first_passthrough:
                return proxied or mocked
            logger.warning(f"⚠️ No fixture for {request.logical_path} in {mode.value} mode, no response produced")
            return None

        return await self._mock(request)

"""
Serving State
=============
The mutable, process-wide state of a running server: the serving mode, the
consecutive-timeout counter behind the circuit breaker, and the recent-request
log. Everything lives on objects created by the app factory instead of module
globals, and every mutation goes through an asyncio.Lock.
"""

import asyncio
import datetime
import logging
from typing import Dict, List

from mockproxy.core.models import ServingMode

logger = logging.getLogger("mockproxy")

# ── Circuit Breaker ──
PROXY_TIMEOUT_THRESHOLD = 3

# ── Recent Logs ──
RECENT_LOGS_SIZE = 50


class ModeController:
    """
    Holds the serving mode and the consecutive-timeout counter.

    Once the counter reaches the threshold the mode is latched to FULL_MOCK and
    the counter goes back to 0. Nothing on the request path ever moves the mode
    out of FULL_MOCK again; only `set_mode` (operator action) does.
    """

    def __init__(self, mode: ServingMode, threshold: int = PROXY_TIMEOUT_THRESHOLD):
        self._mode = mode
        self._threshold = threshold
        self._consecutive_timeouts = 0
        self._lock = asyncio.Lock()

    @property
    def mode(self) -> ServingMode:
        return self._mode

    @property
    def threshold(self) -> int:
        return self._threshold

    @property
    def consecutive_timeouts(self) -> int:
        return self._consecutive_timeouts

    async def record_timeout(self) -> bool:
        """
        Count one timeout-classified proxy failure.
        Returns True when this call tripped the breaker.
        """
        async with self._lock:
            self._consecutive_timeouts += 1
            if self._consecutive_timeouts < self._threshold:
                return False

            logger.warning(
                f"🔴 Proxy timeout threshold ({self._threshold}) reached, "
                f"falling back to {ServingMode.FULL_MOCK.value} mode"
            )
            self._mode = ServingMode.FULL_MOCK
            self._consecutive_timeouts = 0
            return True

    async def set_mode(self, mode: ServingMode) -> None:
        async with self._lock:
            logger.info(f"🔧 Serving mode changed: {self._mode.value} → {mode.value}")
            self._mode = mode
            self._consecutive_timeouts = 0

    def snapshot(self) -> Dict:
        return {
            "mode": self._mode.value,
            "consecutive_timeouts": self._consecutive_timeouts,
            "timeout_threshold": self._threshold,
        }


class RecentLog:
    """Bounded, newest-first log of handled requests for the admin API."""

    def __init__(self, size: int = RECENT_LOGS_SIZE):
        self._size = size
        self._entries: List[Dict] = []
        self._lock = asyncio.Lock()

    async def add(self, method: str, path: str, status: int, source: str) -> Dict:
        entry = {
            "time": datetime.datetime.now().strftime("%H:%M:%S"),
            "method": method,
            "path": path,
            "status": status,
            "source": source,
        }
        async with self._lock:
            self._entries.insert(0, entry)
            if len(self._entries) > self._size:
                self._entries.pop()
        return entry

    async def entries(self) -> List[Dict]:
        async with self._lock:
            return list(self._entries)

"""
Unthrottled HTTP control path: baseline downloads and server-side result hooks.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import aiohttp
from aiohttp.client_exceptions import ClientError

from configuration import (
    CONTROL_TIMEOUT_SECONDS,
    HTTP_SUCCESS_STATUS,
    SAVE_RESULTS_PATH,
    SERVER_METRICS_PATH,
    TEST_PATH,
)

logger = logging.getLogger(__name__)


class HttpControlClient:
    """Plain aiohttp client for the non-throttled requests of the test."""

    def __init__(self, base_url: str, timeout_seconds: float = CONTROL_TIMEOUT_SECONDS):
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        self.session = aiohttp.ClientSession(timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()
            self.session = None

    def _require_session(self) -> aiohttp.ClientSession:
        if self.session is None:
            raise RuntimeError("Control client not initialized. Use async context manager.")
        return self.session

    async def fetch_payload(self, size: int) -> Dict[str, Any]:
        """Download the test payload without throttling.

        Returns:
            Dictionary with status, ok flag, bytes received and latency in ms.
            Status is 0 when the request itself failed.
        """
        session = self._require_session()
        url = f"{self.base_url}{TEST_PATH}"
        start_time = time.time()
        try:
            async with session.get(url, params={"size": str(size)}) as response:
                body = await response.read()
                latency_ms = (time.time() - start_time) * 1000
                return {
                    "status": response.status,
                    "ok": response.status == HTTP_SUCCESS_STATUS,
                    "bytes": len(body),
                    "latency_ms": latency_ms,
                }
        except (ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Control request to {url} failed: {e}")
            return {
                "status": 0,
                "ok": False,
                "bytes": 0,
                "latency_ms": (time.time() - start_time) * 1000,
            }

    async def save_server_results(self) -> bool:
        """Ask the server to persist its own per-transfer results."""
        session = self._require_session()
        url = f"{self.base_url}{SAVE_RESULTS_PATH}"
        try:
            async with session.get(url) as response:
                text = await response.text()
                if response.status != HTTP_SUCCESS_STATUS:
                    logger.warning(f"Server refused to save results ({response.status}): {text.strip()}")
                    return False
                logger.info(f"Server results saved: {text.strip()}")
                return True
        except (ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to trigger server result persistence: {e}")
            return False

    async def fetch_server_metrics(self) -> Optional[str]:
        """Return the server's plain-text counters, or None if unreachable."""
        session = self._require_session()
        url = f"{self.base_url}{SERVER_METRICS_PATH}"
        try:
            async with session.get(url) as response:
                if response.status != HTTP_SUCCESS_STATUS:
                    return None
                return await response.text()
        except (ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Server metrics unavailable: {e}")
            return None

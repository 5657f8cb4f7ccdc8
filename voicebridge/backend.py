"""Connection to the media server used by the gateway, with reconnection."""

import asyncio
import logging
from typing import Optional

import aiohttp

_log = logging.getLogger(__name__)


class BackendServer:
    """Holds the single websocket to the media server and re-establishes it on demand."""

    max_attempts = 5
    retry_delay = 1.0

    def __init__(self, url):
        self.backend_url = url
        self.conn: Optional[aiohttp.ClientWebSocketResponse] = None
        self._session: Optional[aiohttp.ClientSession] = None
        self._reconnecting = False

    async def connect(self, call_type):
        """Replace any current connection with a new one to ``/call/<call_type>``."""
        url = f"{self.backend_url}/call/{call_type}"
        if self.conn is not None:
            await self.conn.close()
            self.conn = None
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        try:
            self.conn = await self._session.ws_connect(url)
        except (aiohttp.ClientError, OSError) as exc:
            _log.error("failed to connect to backend %s: %s", url, exc)
            raise ConnectionError(f"failed to connect to backend {url}: {exc}") from exc
        _log.info("Connected to backend")
        return self.conn

    async def reconnect(self, call_type):
        """Retry the connection with doubling delays.

        Returns the new connection, or None when a reconnection is already under way;
        raises the last error once every attempt has failed.
        """
        if self._reconnecting:
            return None
        self._reconnecting = True
        last_error = None
        try:
            for attempt in range(self.max_attempts):
                _log.info(
                    "Trying to reconnect to backend (attempt %d/%d)", attempt + 1, self.max_attempts
                )
                try:
                    conn = await self.connect(call_type)
                except ConnectionError as exc:
                    last_error = exc
                    _log.warning("Reconnection attempt %d failed: %s", attempt + 1, exc)
                    await asyncio.sleep(self.retry_delay * 2**attempt)
                    continue
                _log.info("Reconnected to backend successfully")
                return conn
        finally:
            self._reconnecting = False
        _log.error("Failed to reconnect after multiple attempts")
        raise last_error

    async def close(self):
        """Close the connection and its session."""
        if self.conn is not None:
            await self.conn.close()
            self.conn = None
        if self._session is not None:
            await self._session.close()
            self._session = None
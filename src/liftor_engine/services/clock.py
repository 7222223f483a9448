"""
Trusted time: the ``Date`` header of a configured HTTP endpoint.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from email.utils import parsedate_to_datetime
from typing import Protocol

import httpx

from ..config import SETTINGS
from ..results import Failure, NetworkError, Ok, Timeout


class TrustedClock(Protocol):
    async def now(self) -> Ok[datetime] | Failure: ...


class HttpDateClock:
    """
    Server time read from an HTTP ``Date`` header.

    After one successful read the offset to the local clock is remembered, so a
    later outage still yields server-anchored time rather than raw device time.
    """

    def __init__(
        self,
        url: str | None = None,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url or SETTINGS.TIME_SOURCE_URL
        self.timeout = timeout
        self._transport = transport
        self._offset: timedelta | None = None

    async def now(self) -> Ok[datetime] | Failure:
        local = datetime.now(UTC)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.head(self.url)
            header = response.headers.get("date")
            if not header:
                raise ValueError("response has no Date header")
            server = parsedate_to_datetime(header)
        except httpx.TimeoutException as e:
            return self._degraded(local, Timeout(f"time source timed out: {e}"))
        except (httpx.HTTPError, ValueError, TypeError) as e:
            return self._degraded(local, NetworkError(f"time source unavailable: {e}"))

        if server.tzinfo is None:
            server = server.replace(tzinfo=UTC)
        server = server.astimezone(UTC)
        self._offset = server - local
        return Ok(server)

    def _degraded(self, local: datetime, failure: Failure) -> Ok[datetime] | Failure:
        if self._offset is None:
            logging.warning("Trusted clock failed with no cached offset: %s", failure)
            return failure
        logging.warning("Trusted clock failed, using cached server offset: %s", failure)
        return Ok(local + self._offset)

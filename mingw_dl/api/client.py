"""
Async client for the release metadata endpoint.
"""

import asyncio
import logging
import time

import aiohttp

from mingw_dl.exceptions import FetchError

log = logging.getLogger(__name__)


def build_timeout(timeout_seconds: float) -> aiohttp.ClientTimeout:
    """
    Builds the client timeout. 0 disables timeouts entirely, so a stalled
    connection blocks until the user cancels.
    """
    if timeout_seconds and timeout_seconds > 0:
        return aiohttp.ClientTimeout(
            total=None, sock_connect=timeout_seconds, sock_read=timeout_seconds
        )
    return aiohttp.ClientTimeout(total=None)


class ReleasesClient:
    """
    Fetches the release list from a GitHub-style releases endpoint.

    The endpoint is fixed per client and requires no authentication.
    """

    def __init__(
        self,
        releases_url: str,
        user_agent: str,
        timeout_seconds: float = 0,
        session: aiohttp.ClientSession | None = None,
    ):
        """
        Initializes the client.

        Args:
            releases_url: The URL returning the JSON list of releases.
            user_agent: Value of the User-Agent header (GitHub rejects requests
                without one).
            timeout_seconds: Socket timeout, 0 to disable.
            session: An existing session to reuse; it will not be closed here.
        """
        self.releases_url = releases_url
        self.user_agent = user_agent
        self.timeout_seconds = timeout_seconds
        self._session = session
        self._owns_session = session is None

    async def _initialize_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={
                    "User-Agent": self.user_agent,
                    "Accept": "application/vnd.github+json",
                    "Accept-Encoding": "gzip, deflate",
                },
                timeout=build_timeout(self.timeout_seconds),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def fetch_releases_payload(self) -> bytes:
        """
        Performs the GET request and returns the full response body.

        Raises:
            FetchError: On any transport failure or non-2xx response.
        """
        session = await self._initialize_session()
        start_time = time.monotonic()
        try:
            async with session.get(self.releases_url, allow_redirects=True) as r:
                r.raise_for_status()
                payload = await r.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.debug(f"Release metadata request to {self.releases_url} failed: {e}")
            raise FetchError(f"Could not fetch releases: {e}") from e

        duration_ms = (time.monotonic() - start_time) * 1000
        log.debug(
            f"Fetched {len(payload)} bytes of release metadata in {duration_ms:.0f} ms"
        )
        return payload

"""
Handles the low-level, cancellable download of a single file over HTTP.
"""

import asyncio
import logging
import os
import threading
from collections.abc import Callable

import aiofiles
import aiohttp

from mingw_dl.api.client import build_timeout
from mingw_dl.exceptions import TransferCancelledError, TransferError
from mingw_dl.models.config import DEFAULT_CHUNK_SIZE

log = logging.getLogger(__name__)

# (percent or None when the total is unknown, bytes received, total bytes or None)
TransferProgressCallback = Callable[[float | None, int, int | None], None]


def _content_length(response: aiohttp.ClientResponse) -> int | None:
    value = response.headers.get("Content-Length")
    if value is None:
        return None
    try:
        length = int(value)
    except ValueError:
        return None
    return length if length > 0 else None


class TransferController:
    """
    Streams one HTTP resource to disk, reporting byte progress and honouring a
    cooperative cancellation flag.

    Nothing is retried: a failed or cancelled transfer leaves the partially
    written file in place and raises.
    """

    def __init__(
        self,
        user_agent: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        timeout_seconds: float = 0,
        session: aiohttp.ClientSession | None = None,
    ):
        self.user_agent = user_agent
        self.chunk_size = chunk_size
        self.timeout_seconds = timeout_seconds
        self._session = session
        self._owns_session = session is None

    async def _initialize_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={
                    "User-Agent": self.user_agent,
                    # Byte progress is computed against Content-Length, so the
                    # body must arrive exactly as sized.
                    "Accept-Encoding": "identity",
                },
                timeout=build_timeout(self.timeout_seconds),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Closes the session if this controller created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            log.debug("Download session closed.")

    async def transfer(
        self,
        url: str,
        destination_path: str | os.PathLike,
        on_progress: TransferProgressCallback | None = None,
        cancel_flag: threading.Event | None = None,
        size_hint: int = 0,
    ) -> int:
        """
        Downloads `url` into `destination_path`, truncating any existing file.

        Args:
            url: The resource to fetch. Redirects are followed.
            destination_path: Target file. Its directory must exist.
            on_progress: Called after every written chunk.
            cancel_flag: Polled before each chunk is accepted.
            size_hint: Expected size, used when the server sends no
                Content-Length. 0 means unknown.

        Returns:
            The number of bytes written.

        Raises:
            TransferCancelledError: If `cancel_flag` was set mid-transfer.
            TransferError: If the file cannot be written or the request fails.
        """
        name = os.path.basename(os.fspath(destination_path))

        def cancelled() -> bool:
            return cancel_flag is not None and cancel_flag.is_set()

        try:
            f = await aiofiles.open(destination_path, "wb")
        except OSError as e:
            raise TransferError(f"Cannot open '{destination_path}': {e}") from e

        bytes_received = 0
        try:
            if cancelled():
                raise TransferCancelledError(f"Download of '{name}' cancelled.")

            session = await self._initialize_session()
            async with session.get(url, allow_redirects=True) as response:
                response.raise_for_status()

                total = _content_length(response) or (size_hint or None)
                log.debug(
                    f"Downloading '{name}' ({total if total else 'unknown'} bytes)"
                )

                async for chunk in response.content.iter_chunked(self.chunk_size):
                    if cancelled():
                        log.info(
                            f"[yellow]Download of '{name}' cancelled after "
                            f"{bytes_received} bytes.[/yellow]"
                        )
                        raise TransferCancelledError(
                            f"Download of '{name}' cancelled."
                        )

                    await f.write(chunk)
                    bytes_received += len(chunk)

                    if on_progress is not None:
                        if total:
                            percent = min(bytes_received / total * 100, 100.0)
                            on_progress(percent, bytes_received, total)
                        else:
                            on_progress(None, bytes_received, None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.debug(f"Download of '{name}' failed after {bytes_received} bytes: {e}")
            raise TransferError(f"Download of '{name}' failed: {e}") from e
        except OSError as e:
            raise TransferError(f"Cannot write '{destination_path}': {e}") from e
        finally:
            await f.close()

        return bytes_received

"""Shared test helpers and fixtures."""

import zipfile
from unittest.mock import MagicMock

import aiohttp
import pytest

from mingw_dl.core.attributes import parse_asset_name
from mingw_dl.models.release import Asset, Release


class FakeContent:
    """Stands in for `aiohttp.StreamReader`, yielding pre-baked chunks."""

    def __init__(self, chunks, error: Exception | None = None, on_chunk=None):
        self._chunks = list(chunks)
        self._error = error
        self._on_chunk = on_chunk
        self.requested_chunk_size = None

    async def iter_chunked(self, n):
        self.requested_chunk_size = n
        for index, chunk in enumerate(self._chunks):
            yield chunk
            if self._on_chunk is not None:
                self._on_chunk(index)
        if self._error is not None:
            raise self._error


class FakeResponse:
    def __init__(
        self,
        chunks=(),
        headers: dict | None = None,
        status: int = 200,
        body: bytes = b"",
        error: Exception | None = None,
        on_chunk=None,
    ):
        self.status = status
        self.headers = headers or {}
        self.body = body
        self.content = FakeContent(chunks, error, on_chunk)

    def raise_for_status(self):
        if self.status >= 400:
            raise aiohttp.ClientResponseError(
                request_info=MagicMock(),
                history=(),
                status=self.status,
                message="Boom",
            )

    async def read(self):
        return self.body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


class FakeSession:
    """Minimal `aiohttp.ClientSession` replacement recording requested URLs."""

    def __init__(self, response: FakeResponse | None = None, error=None):
        self.response = response or FakeResponse()
        self.error = error
        self.requests: list[str] = []
        self.closed = False

    def get(self, url, **kwargs):
        self.requests.append(url)
        if self.error is not None:
            raise self.error
        return self.response

    async def close(self):
        self.closed = True


def make_asset(
    name: str = "x86_64-13.2.0-release-posix-seh-ucrt-rt_v11-rev1.7z",
    size: int = 1024,
    url: str = "https://example.invalid/download/asset.7z",
) -> Asset:
    return Asset(name=name, size=size, url=url, attributes=parse_asset_name(name))


def make_release(tag: str = "13.2.0-rt_v11-rev1", names=None) -> Release:
    names = names or [
        "i686-13.2.0-release-posix-dwarf-msvcrt-rt_v11-rev1.7z",
        "x86_64-13.2.0-release-posix-seh-ucrt-rt_v11-rev1.7z",
        "x86_64-13.2.0-release-win32-seh-msvcrt-rt_v11-rev1.7z",
    ]
    return Release(
        tag=tag,
        published_at="2023-08-30T12:00:00Z",
        assets=tuple(make_asset(name) for name in names),
    )


def build_zip(path, members) -> str:
    """Writes a zip archive; `members` maps entry names to bytes (None for dirs)."""
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, data in members.items():
            if data is None:
                zf.writestr(zipfile.ZipInfo(name.rstrip("/") + "/"), b"")
            else:
                zf.writestr(name, data)
    return str(path)


@pytest.fixture
def asset_factory():
    return make_asset


@pytest.fixture
def release_factory():
    return make_release


@pytest.fixture
def zip_factory():
    return build_zip


@pytest.fixture
def fake_session():
    """
    Factory for FakeSession objects wrapping a FakeResponse.

    `error` is raised by `session.get()`; `stream_error` is raised by the body
    stream after its chunks.
    """

    def _make(*args, error=None, stream_error=None, **kwargs):
        response = FakeResponse(*args, error=stream_error, **kwargs)
        return FakeSession(response, error=error)

    return _make

"""
Read-only access to the archive formats published for MinGW-w64 builds.

Every reader exposes the same sequential view: the entry headers in archive
order, and the data of each entry as a stream of blocks. Both 7z (via py7zr)
and zip (via zipfile, with stored/deflate/bzip2/lzma members) are supported.
"""

import logging
import lzma
import os
import posixpath
import queue
import stat
import threading
import time
import zipfile
import zlib
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

import py7zr
from py7zr.exceptions import ArchiveError, PasswordRequired
from py7zr.io import Py7zIO, WriterFactory

from mingw_dl.exceptions import ArchiveOpenError, ArchiveReadError

log = logging.getLogger(__name__)

SEVEN_ZIP_MAGIC = b"7z\xbc\xaf\x27\x1c"
ZIP_MAGICS = (b"PK\x03\x04", b"PK\x05\x06", b"PK\x07\x08")

DEFAULT_BLOCK_SIZE = 65536


@dataclass(frozen=True)
class ArchiveEntry:
    """The header of one archive member, with its path exactly as declared."""

    path: str
    is_dir: bool = False
    size: int = 0
    is_symlink: bool = False
    mtime: float | None = None
    mode: int | None = None
    handle: object = field(default=None, compare=False, repr=False)


class ArchiveReader(ABC):
    """Sequential reader over one opened archive."""

    format_name = ""

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)

    @abstractmethod
    def entries(self) -> Iterator[ArchiveEntry]:
        """Yields the entry headers in archive order."""

    @abstractmethod
    def iter_data(
        self, entry: ArchiveEntry, block_size: int = DEFAULT_BLOCK_SIZE
    ) -> Iterator[bytes]:
        """
        Yields the data of `entry` block by block.

        Raises:
            ArchiveReadError: If the data is corrupt or cannot be decoded.
        """

    def skip(self, entry: ArchiveEntry) -> None:
        """Discards the data of `entry` without reading it."""

    @abstractmethod
    def close(self) -> None: ...

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


_ZIP_READ_ERRORS = (
    zipfile.BadZipFile,
    zlib.error,
    lzma.LZMAError,
    EOFError,
    NotImplementedError,
    RuntimeError,
    ValueError,
    OSError,
)


class ZipArchiveReader(ArchiveReader):
    format_name = "zip"

    def __init__(self, path: str | os.PathLike):
        super().__init__(path)
        try:
            self._zip = zipfile.ZipFile(self.path, "r")
        except (zipfile.BadZipFile, OSError, ValueError) as e:
            raise ArchiveOpenError(f"Cannot open zip archive '{self.path}': {e}") from e

    @staticmethod
    def _entry_for(info: zipfile.ZipInfo) -> ArchiveEntry:
        mode = None
        is_symlink = False
        if info.create_system == 3:  # unix attributes in the high word
            unix_mode = info.external_attr >> 16
            if unix_mode:
                is_symlink = stat.S_ISLNK(unix_mode)
                mode = stat.S_IMODE(unix_mode)
        try:
            mtime = time.mktime(info.date_time + (0, 0, -1))
        except (OverflowError, ValueError):
            mtime = None
        return ArchiveEntry(
            path=info.filename,
            is_dir=info.is_dir(),
            size=info.file_size,
            is_symlink=is_symlink,
            mtime=mtime,
            mode=mode,
            handle=info,
        )

    def entries(self) -> Iterator[ArchiveEntry]:
        for info in self._zip.infolist():
            yield self._entry_for(info)

    def iter_data(
        self, entry: ArchiveEntry, block_size: int = DEFAULT_BLOCK_SIZE
    ) -> Iterator[bytes]:
        try:
            with self._zip.open(entry.handle, "r") as src:
                while block := src.read(block_size):
                    yield block
        except _ZIP_READ_ERRORS as e:
            raise ArchiveReadError(f"Cannot read '{entry.path}': {e}") from e

    def close(self) -> None:
        self._zip.close()


def _is_plain_relative(name: str) -> bool:
    """True for non-empty, relative member names without '..' components."""
    normalized = name.replace("\\", "/")
    if not normalized or normalized.startswith("/") or ":" in normalized[:3]:
        return False
    return ".." not in posixpath.normpath(normalized).split("/")


class _Stopped(Exception):
    """Raised inside the decoder thread once the reader has been closed."""


class _MemberSink(Py7zIO):
    """Forwards the decoded bytes of one member to the reader, in order."""

    def __init__(self, reader: "SevenZipArchiveReader", seq: int):
        self._reader = reader
        self._seq = seq
        self._written = 0

    def write(self, s) -> int:
        self._reader._feed(self._seq, bytes(s))
        self._written += len(s)
        return len(s)

    def read(self, size: int | None = None) -> bytes:
        return b""

    def seek(self, offset: int, whence: int = 0) -> int:
        return 0

    def flush(self) -> None:
        pass

    def size(self) -> int:
        return self._written


class _SinkFactory(WriterFactory):
    def __init__(self, reader: "SevenZipArchiveReader"):
        self._reader = reader
        self._created = 0

    def create(self, filename: str) -> Py7zIO:
        sink = _MemberSink(self._reader, self._created)
        self._created += 1
        return sink


_END = object()


class SevenZipArchiveReader(ArchiveReader):
    """
    7z reader built on py7zr.

    py7zr pushes decoded data into writers while it walks the archive, so the
    members are decoded in a single pass on a helper thread and handed over
    through a bounded queue, one entry at a time. The pass starts at the first
    entry whose data is requested and covers every later data-bearing member.
    Only plain relative, non-link members are ever requested from py7zr.
    """

    format_name = "7z"

    QUEUE_CHUNKS = 32

    def __init__(self, path: str | os.PathLike):
        super().__init__(path)
        try:
            # A file object keeps py7zr on one sequential decoding thread.
            self._fp = open(self.path, "rb")  # noqa: SIM115
        except OSError as e:
            raise ArchiveOpenError(f"Cannot open 7z archive '{self.path}': {e}") from e
        try:
            self._archive = py7zr.SevenZipFile(self._fp, mode="r")
            files = list(self._archive.files)
        except (
            py7zr.Bad7zFile,
            ArchiveError,
            PasswordRequired,
            EOFError,
            OSError,
            ValueError,
        ) as e:
            self._fp.close()
            raise ArchiveOpenError(f"Cannot open 7z archive '{self.path}': {e}") from e

        self._entries = [self._entry_for(position, f) for position, f in enumerate(files)]
        self._stream: list[ArchiveEntry] = []
        self._next = 0
        self._queue: queue.Queue = queue.Queue(maxsize=self.QUEUE_CHUNKS)
        self._stop = threading.Event()
        self._decoder: threading.Thread | None = None

    @staticmethod
    def _entry_for(position: int, f) -> ArchiveEntry:
        timestamp = f.lastwritetime
        return ArchiveEntry(
            path=f.filename,
            is_dir=bool(f.is_directory),
            size=0 if f.emptystream else (f.uncompressed or 0),
            is_symlink=bool(f.is_symlink),
            mtime=timestamp.totimestamp() if timestamp is not None else None,
            mode=f.posix_mode or None,
            handle=position,
        )

    @staticmethod
    def _carries_data(entry: ArchiveEntry) -> bool:
        return (
            not entry.is_dir
            and not entry.is_symlink
            and entry.size > 0
            and _is_plain_relative(entry.path)
        )

    def entries(self) -> Iterator[ArchiveEntry]:
        yield from self._entries

    def _feed(self, seq: int, data: bytes) -> None:
        # Runs on the decoder thread.
        while True:
            if self._stop.is_set():
                raise _Stopped()
            try:
                self._queue.put((seq, data), timeout=0.1)
                return
            except queue.Full:
                continue

    def _decode(self, targets: list[str]) -> None:
        try:
            self._archive.extract(targets=targets, factory=_SinkFactory(self))
        except _Stopped:
            return
        except Exception as e:  # handed to the consuming thread
            self._finish_stream(e)
            return
        self._finish_stream(_END)

    def _finish_stream(self, item) -> None:
        while not self._stop.is_set():
            try:
                self._queue.put(item, timeout=0.1)
                return
            except queue.Full:
                continue

    def _start(self, entry: ArchiveEntry) -> None:
        self._stream = [
            e for e in self._entries[entry.handle :] if self._carries_data(e)
        ]
        log.debug(f"Decoding {len(self._stream)} members from '{self.path.name}'")
        self._decoder = threading.Thread(
            target=self._decode,
            args=([e.path for e in self._stream],),
            name=f"7z-decode:{self.path.name}",
            daemon=True,
        )
        self._decoder.start()

    def _take(self, entry: ArchiveEntry) -> Iterator[bytes]:
        """Yields the decoded data of `entry`, which must be next in the stream."""
        if self._next >= len(self._stream) or self._stream[self._next] is not entry:
            raise ArchiveReadError(f"'{entry.path}' requested out of archive order")

        received = 0
        while received < entry.size:
            item = self._queue.get()
            if item is _END:
                raise ArchiveReadError(
                    f"Truncated data for '{entry.path}' ({received} of {entry.size} bytes)"
                )
            if isinstance(item, BaseException):
                raise ArchiveReadError(f"Cannot read '{entry.path}': {item}") from item
            seq, data = item
            if seq != self._next:
                raise ArchiveReadError(f"Unexpected data while reading '{entry.path}'")
            received += len(data)
            yield data

        self._next += 1
        if self._next == len(self._stream):
            # The final item carries the integrity check of the last member.
            item = self._queue.get()
            if isinstance(item, BaseException):
                raise ArchiveReadError(f"Cannot read '{entry.path}': {item}") from item

    def iter_data(
        self, entry: ArchiveEntry, block_size: int = DEFAULT_BLOCK_SIZE
    ) -> Iterator[bytes]:
        if not self._carries_data(entry):
            return
        if self._decoder is None:
            self._start(entry)
        for data in self._take(entry):
            for offset in range(0, len(data), block_size):
                yield data[offset : offset + block_size]

    def skip(self, entry: ArchiveEntry) -> None:
        # Before decoding starts a skipped member is simply never requested.
        if self._decoder is None or not self._carries_data(entry):
            return
        for _ in self._take(entry):
            pass

    def close(self) -> None:
        self._stop.set()
        if self._decoder is not None:
            while self._decoder.is_alive():
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    self._decoder.join(0.05)
        try:
            self._archive.close()
        finally:
            self._fp.close()


def open_archive(path: str | os.PathLike) -> ArchiveReader:
    """
    Opens `path` with the reader matching its signature.

    Raises:
        ArchiveOpenError: If the file cannot be read or is neither 7z nor zip.
    """
    try:
        with open(path, "rb") as f:
            magic = f.read(len(SEVEN_ZIP_MAGIC))
    except OSError as e:
        raise ArchiveOpenError(f"Cannot open archive '{path}': {e}") from e

    if magic.startswith(SEVEN_ZIP_MAGIC):
        return SevenZipArchiveReader(path)
    if magic.startswith(ZIP_MAGICS):
        return ZipArchiveReader(path)
    raise ArchiveOpenError(f"Unsupported archive format: '{path}'")

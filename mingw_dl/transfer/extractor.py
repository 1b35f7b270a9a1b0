"""
Safe, two-pass extraction of downloaded archives.

Pass 1 counts the entry headers so extraction progress can be reported as a
percentage. Pass 2 reopens the archive and writes every entry below the
destination directory, refusing anything that would land outside of it.
"""

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PureWindowsPath

from mingw_dl.exceptions import (
    ArchiveWriteError,
    ExtractIOError,
    PathTraversalError,
)

from .readers import DEFAULT_BLOCK_SIZE, ArchiveEntry, open_archive

log = logging.getLogger(__name__)

# (percent or None when the total is unknown, entries done, total or None)
ExtractProgressCallback = Callable[[float | None, int, int | None], None]


class ExtractionState(str, Enum):
    IDLE = "idle"
    COUNTING = "counting"
    EXTRACTING = "extracting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class ExtractionResult:
    destination: Path
    entries_done: int
    entries_skipped: int
    entries_failed: int
    entries_total: int | None = None


def is_absolute_entry(entry_path: str) -> bool:
    """
    True for member names rooted anywhere: POSIX roots, Windows drives
    (including drive-relative `C:foo`) and UNC or backslash roots.
    """
    if entry_path.startswith(("/", "\\")):
        return True
    win = PureWindowsPath(entry_path)
    return bool(win.drive or win.root)


def safe_join(base: str | os.PathLike, entry_path: str) -> str:
    """
    Joins a relative member name onto `base` and normalizes the result.

    The normalized result must be `base` itself or lie below it; the check is
    made on whole path components, so `/out` does not admit `/outside`.

    Raises:
        PathTraversalError: If the entry escapes `base`.
    """
    base_norm = os.path.normpath(os.path.abspath(base))
    relative = entry_path.replace("\\", "/")
    joined = os.path.normpath(os.path.join(base_norm, relative))

    prefix = base_norm if base_norm.endswith(os.sep) else base_norm + os.sep
    if joined != base_norm and not joined.startswith(prefix):
        raise PathTraversalError(
            f"Blocked path traversal in archive entry '{entry_path}'"
        )
    return joined


class _DiskWriter:
    """Materializes archive entries on disk, one entry at a time."""

    def __init__(self, preserve_permissions: bool = True, preserve_times: bool = True):
        self.preserve_permissions = preserve_permissions
        self.preserve_times = preserve_times
        self._file = None
        self._entry: ArchiveEntry | None = None
        self._target: str | None = None

    def write_header(self, entry: ArchiveEntry, target: str) -> None:
        """
        Prepares `target` for the entry's data.

        Raises:
            OSError: If the directory or file cannot be created.
        """
        self._entry, self._target = entry, target
        if entry.is_dir:
            os.makedirs(target, exist_ok=True)
            return

        os.makedirs(os.path.dirname(target), exist_ok=True)
        if os.path.islink(target):
            os.unlink(target)
        self._file = open(target, "wb")  # noqa: SIM115

    def write_block(self, block: bytes) -> None:
        if self._file is not None:
            self._file.write(block)

    def finish_entry(self) -> None:
        """Closes the current file and restores its recorded metadata."""
        entry, target = self._entry, self._target
        self._entry = self._target = None
        if self._file is None:
            return
        try:
            self._file.close()
        finally:
            self._file = None

        try:
            if self.preserve_permissions and entry.mode:
                os.chmod(target, entry.mode & 0o777)
            if self.preserve_times and entry.mtime is not None:
                os.utime(target, (entry.mtime, entry.mtime))
        except OSError as e:
            log.debug(f"Could not restore metadata of '{target}': {e}")

    def abort(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
        self._entry = self._target = None


class ArchiveExtractor:
    """
    Counts and extracts 7z and zip archives.

    Both operations block and are meant to run on a worker thread. Extraction
    is not cancellable: once started it runs to success or failure.
    """

    def __init__(
        self,
        block_size: int = DEFAULT_BLOCK_SIZE,
        preserve_permissions: bool = True,
        preserve_times: bool = True,
    ):
        self.block_size = block_size
        self.preserve_permissions = preserve_permissions
        self.preserve_times = preserve_times
        self.state = ExtractionState.IDLE

    def count_entries(self, archive_path: str | os.PathLike) -> int:
        """
        Counts entry headers without writing anything.

        Raises:
            ArchiveOpenError: If the archive cannot be opened.
            ArchiveReadError: If the headers cannot be read to the end.
        """
        self.state = ExtractionState.COUNTING
        count = 0
        try:
            with open_archive(archive_path) as reader:
                for entry in reader.entries():
                    reader.skip(entry)
                    count += 1
        except BaseException:
            self.state = ExtractionState.FAILED
            raise
        self.state = ExtractionState.IDLE
        log.debug(f"Counted {count} entries in '{os.path.basename(archive_path)}'")
        return count

    def extract(
        self,
        archive_path: str | os.PathLike,
        destination_dir: str | os.PathLike,
        on_progress: ExtractProgressCallback | None = None,
        total: int | None = None,
    ) -> ExtractionResult:
        """
        Extracts every safe entry of `archive_path` below `destination_dir`.

        Entries with an empty or absolute path are skipped. A failure to create
        an entry's file or directory skips that entry only. Everything else
        aborts the extraction.

        Args:
            archive_path: The archive to read.
            destination_dir: Root of the extracted tree, created if needed.
            on_progress: Called once per completed entry.
            total: Entry count from `count_entries`, or None if unknown.

        Raises:
            ExtractIOError: If the destination directory cannot be created.
            ArchiveOpenError: If the archive cannot be opened.
            PathTraversalError: If an entry resolves outside the destination.
            ArchiveReadError: If entry headers or data cannot be read.
            ArchiveWriteError: If entry data cannot be written.
        """
        self.state = ExtractionState.EXTRACTING
        try:
            result = self._extract(archive_path, destination_dir, on_progress, total)
        except BaseException:
            self.state = ExtractionState.FAILED
            raise
        self.state = ExtractionState.SUCCEEDED
        return result

    def _extract(self, archive_path, destination_dir, on_progress, total):
        base = os.path.normpath(os.path.abspath(destination_dir))
        try:
            os.makedirs(base, exist_ok=True)
        except OSError as e:
            raise ExtractIOError(f"Cannot create directory '{base}': {e}") from e

        if total is not None and total <= 0:
            total = None

        done = skipped = failed = 0
        writer = _DiskWriter(self.preserve_permissions, self.preserve_times)

        with open_archive(archive_path) as reader:
            try:
                for entry in reader.entries():
                    if not entry.path:
                        reader.skip(entry)
                        skipped += 1
                        continue

                    if is_absolute_entry(entry.path):
                        log.warning(
                            f"[yellow]Skipping absolute archive entry "
                            f"'{entry.path}'[/yellow]"
                        )
                        reader.skip(entry)
                        skipped += 1
                        continue

                    target = safe_join(base, entry.path)

                    if entry.is_symlink:
                        # Counted as handled so progress still reaches 100%.
                        log.warning(
                            f"[yellow]Skipping symbolic link '{entry.path}'[/yellow]"
                        )
                        reader.skip(entry)
                        skipped += 1
                    else:
                        failed += self._extract_entry(reader, writer, entry, target)

                    done += 1
                    if on_progress is not None:
                        if total:
                            on_progress(min(done / total * 100, 100.0), done, total)
                        else:
                            on_progress(None, done, None)
            finally:
                writer.abort()

        log.info(
            f"Extracted {done} entries to '{base}'"
            + (f" ({skipped} skipped, {failed} failed)" if skipped or failed else "")
        )
        return ExtractionResult(
            destination=Path(base),
            entries_done=done,
            entries_skipped=skipped,
            entries_failed=failed,
            entries_total=total,
        )

    def _extract_entry(
        self, reader, writer: _DiskWriter, entry: ArchiveEntry, target: str
    ) -> int:
        """Writes one entry; returns 1 if its header could not be created."""
        failed = 0
        try:
            writer.write_header(entry, target)
        except OSError as e:
            log.warning(f"[yellow]Cannot create '{target}': {e}[/yellow]")
            writer.abort()
            reader.skip(entry)
            failed = 1
        else:
            if not entry.is_dir:
                self._copy_data(reader, writer, entry)
            else:
                reader.skip(entry)

        try:
            writer.finish_entry()
        except OSError as e:
            raise ArchiveWriteError(f"Cannot finish '{entry.path}': {e}") from e
        return failed

    def _copy_data(self, reader, writer: _DiskWriter, entry: ArchiveEntry) -> None:
        for block in reader.iter_data(entry, self.block_size):
            try:
                writer.write_block(block)
            except OSError as e:
                raise ArchiveWriteError(f"Cannot write '{entry.path}': {e}") from e

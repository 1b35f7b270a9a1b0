"""
The orchestrator for refreshing release metadata and running the
download-then-extract pipeline on a background task.
"""

import asyncio
import logging
import os
import threading
from pathlib import Path

from mingw_dl.api.client import ReleasesClient
from mingw_dl.api.decoder import decode_releases
from mingw_dl.exceptions import (
    DecodeError,
    ExtractError,
    FetchError,
    OperationInProgressError,
    TransferCancelledError,
    TransferError,
)
from mingw_dl.models.release import Asset, Release
from mingw_dl.models.state import AppState
from mingw_dl.transfer.downloader import TransferController
from mingw_dl.transfer.extractor import ArchiveExtractor
from mingw_dl.utils.path import asset_output_path, extraction_dir_for

from .events import (
    EventChannel,
    OutcomeEvent,
    OutcomeStatus,
    ProgressEvent,
    Stage,
    StatusEvent,
)
from .filters import FilterEngine

log = logging.getLogger(__name__)


class PipelineOrchestrator:
    """
    Owns the application state, the cancellation flag and the single running
    operation, and reports everything through one EventChannel.

    At most one download/extract operation runs at a time. Nothing is retried:
    every operation ends with exactly one OutcomeEvent.
    """

    def __init__(
        self,
        client: ReleasesClient,
        controller: TransferController,
        extractor: ArchiveExtractor | None = None,
        channel: EventChannel | None = None,
        state: AppState | None = None,
    ):
        self.client = client
        self.controller = controller
        self.extractor = extractor or ArchiveExtractor()
        self.channel = channel or EventChannel()
        self.state = state or AppState()
        self.filter_engine = FilterEngine(self.state.filters)
        self._cancel_flag = threading.Event()
        self._task: asyncio.Task | None = None
        self._running = False
        self._stage: Stage | None = None

    @property
    def cancel_flag(self) -> threading.Event:
        return self._cancel_flag

    @property
    def busy(self) -> bool:
        return self._running or (self._task is not None and not self._task.done())

    def cancel(self) -> None:
        """Requests cancellation of the running download; a no-op when idle."""
        if not self.busy:
            log.debug("Nothing to cancel.")
            return
        if not self._cancel_flag.is_set():
            log.debug("Cancellation requested.")
            if self._stage is Stage.EXTRACT:
                self.channel.post(
                    StatusEvent(
                        "Extraction cannot be cancelled; it will run to completion.",
                        Stage.EXTRACT,
                    )
                )
            else:
                self.channel.post(StatusEvent("Cancel requested...", Stage.DOWNLOAD))
        self._cancel_flag.set()

    # Metadata

    async def refresh(self) -> tuple[Release, ...]:
        """
        Fetches and decodes the release list, then replaces the loaded releases.

        On failure the previously loaded releases are kept.

        Raises:
            FetchError: If the metadata could not be retrieved.
            DecodeError: If the metadata payload is malformed.
        """
        self.channel.bind()
        self.channel.post(StatusEvent("Fetching releases...", Stage.REFRESH))
        try:
            payload = await self.client.fetch_releases_payload()
        except FetchError as e:
            self._finish(Stage.REFRESH, OutcomeStatus.FAILED, "Network error.", e)
            raise
        try:
            releases = decode_releases(payload)
        except DecodeError as e:
            self._finish(
                Stage.REFRESH, OutcomeStatus.FAILED, "Release data parse error.", e
            )
            raise

        self.state.replace_releases(releases)
        self._finish(
            Stage.REFRESH,
            OutcomeStatus.SUCCEEDED,
            f"Releases loaded ({len(releases)}).",
        )
        return releases

    def filtered_assets(self, release: Release) -> list[Asset]:
        """Returns the assets of `release` matching the current filter selection."""
        return self.filter_engine.filtered(release.assets)

    # Download + extract

    def start(
        self,
        asset: Asset,
        destination_dir: str | os.PathLike,
        extract: bool = False,
    ) -> asyncio.Task:
        """
        Runs the pipeline for `asset` on a background task and returns its handle.

        Raises:
            OperationInProgressError: If another operation is still running.
        """
        if self.busy:
            raise OperationInProgressError(
                "A download is already in progress. Wait for it or cancel it first."
            )
        self.channel.bind()
        self._cancel_flag.clear()
        self._task = asyncio.create_task(
            self.run(asset, destination_dir, extract), name=f"pipeline:{asset.name}"
        )
        return self._task

    async def join(self) -> OutcomeEvent | None:
        """Waits for the running operation and returns its outcome."""
        if self._task is None:
            return None
        return await self._task

    async def shutdown(self) -> None:
        """Cancels the running download, if any, and waits for it to settle."""
        if self.busy:
            self.cancel()
            await asyncio.gather(self._task, return_exceptions=True)

    async def close(self) -> None:
        await self.shutdown()
        await self.controller.close()
        await self.client.close()

    async def run(
        self,
        asset: Asset,
        destination_dir: str | os.PathLike,
        extract: bool = False,
    ) -> OutcomeEvent:
        """
        Downloads `asset` into `destination_dir` and optionally extracts it into
        a sibling directory named after the archive.

        Returns:
            The terminal OutcomeEvent, which has also been posted.

        Raises:
            OperationInProgressError: If another run is active.
        """
        if self._running:
            raise OperationInProgressError("A download is already in progress.")
        self._running = True
        try:
            return await self._run(asset, destination_dir, extract)
        finally:
            self._running = False
            self._stage = None
            self._cancel_flag.clear()

    async def _run(
        self, asset: Asset, destination_dir: str | os.PathLike, extract: bool
    ) -> OutcomeEvent:
        self.channel.bind()
        self._stage = Stage.DOWNLOAD
        output_path = asset_output_path(destination_dir, asset.name)

        self.channel.post(
            StatusEvent(
                "Downloading (then extract)..." if extract else "Downloading...",
                Stage.DOWNLOAD,
            )
        )
        self.channel.post(
            ProgressEvent(
                Stage.DOWNLOAD, 0.0 if asset.size else None, 0, asset.size or None
            )
        )

        stage = Stage.DOWNLOAD
        try:
            await self.controller.transfer(
                asset.url,
                output_path,
                on_progress=self._on_download_progress,
                cancel_flag=self._cancel_flag,
                size_hint=asset.size,
            )
            if not extract:
                log.info(f"Downloaded '{asset.name}' to '{output_path}'")
                return self._finish(
                    Stage.DOWNLOAD, OutcomeStatus.SUCCEEDED, "Download complete."
                )

            self.channel.post(StatusEvent("Download complete.", Stage.DOWNLOAD))
            stage = Stage.EXTRACT
            return await self.extract_archive(output_path)
        except TransferCancelledError as e:
            return self._finish(
                Stage.DOWNLOAD, OutcomeStatus.CANCELLED, "Download cancelled.", e
            )
        except TransferError as e:
            return self._finish(
                Stage.DOWNLOAD, OutcomeStatus.FAILED, f"Download failed: {e}", e
            )
        except asyncio.CancelledError as e:
            self._finish(stage, OutcomeStatus.CANCELLED, "Operation cancelled.", e)
            raise
        except Exception as e:
            log.debug("Full traceback:", exc_info=True)
            self._finish(stage, OutcomeStatus.FAILED, f"Unexpected error: {e}", e)
            raise

    async def extract_archive(
        self, archive_path: Path, target_dir: Path | None = None
    ) -> OutcomeEvent:
        """
        Counts, then extracts `archive_path` on a worker thread.

        The default target is a directory beside the archive named after its stem.
        Extraction is not cancellable once started.
        """
        self.channel.bind()
        self._stage = Stage.EXTRACT
        archive_path = Path(archive_path)
        target_dir = Path(target_dir) if target_dir else extraction_dir_for(archive_path)

        self.channel.post(StatusEvent("Counting archive entries...", Stage.COUNT))
        try:
            total = await asyncio.to_thread(self.extractor.count_entries, archive_path)
        except ExtractError as e:
            log.warning(
                f"[yellow]Could not count archive entries, progress will be "
                f"indeterminate: {e}[/yellow]"
            )
            total = None
        if not total:
            total = None

        self.channel.post(
            ProgressEvent(Stage.EXTRACT, 0.0 if total else None, 0, total)
        )
        self.channel.post(StatusEvent("Extracting...", Stage.EXTRACT))
        try:
            result = await asyncio.to_thread(
                self.extractor.extract,
                archive_path,
                target_dir,
                self._on_extract_progress,
                total,
            )
        except ExtractError as e:
            return self._finish(
                Stage.EXTRACT, OutcomeStatus.FAILED, f"Extract failed: {e}", e
            )

        log.debug(f"Extraction result: {result}")
        return self._finish(
            Stage.EXTRACT, OutcomeStatus.SUCCEEDED, "Extract complete."
        )

    def _on_download_progress(
        self, percent: float | None, received: int, total: int | None
    ) -> None:
        self.channel.post(ProgressEvent(Stage.DOWNLOAD, percent, received, total))

    def _on_extract_progress(
        self, percent: float | None, done: int, total: int | None
    ) -> None:
        # Runs on the extraction worker thread; the channel hops to the loop.
        self.channel.post(ProgressEvent(Stage.EXTRACT, percent, done, total))

    def _finish(
        self,
        stage: Stage,
        status: OutcomeStatus,
        message: str,
        error: BaseException | None = None,
    ) -> OutcomeEvent:
        outcome = OutcomeEvent(stage, status, message, error)
        self.channel.post(outcome)
        return outcome

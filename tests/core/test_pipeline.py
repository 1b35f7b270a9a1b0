"""Tests for PipelineOrchestrator."""

import asyncio
import io
import json
import zipfile
from unittest.mock import AsyncMock

import aiohttp
import pytest

from mingw_dl.api.client import ReleasesClient
from mingw_dl.core.events import (
    OutcomeEvent,
    OutcomeStatus,
    ProgressEvent,
    Stage,
    StatusEvent,
)
from mingw_dl.core.pipeline import PipelineOrchestrator
from mingw_dl.exceptions import DecodeError, FetchError, OperationInProgressError
from mingw_dl.models.attributes import Arch, AttributeField, FilterSelection
from mingw_dl.models.state import AppState
from mingw_dl.transfer.downloader import TransferController

RELEASES_JSON = json.dumps(
    [
        {
            "tag_name": "13.2.0-rt_v11-rev1",
            "published_at": "2023-08-30T12:00:00Z",
            "assets": [
                {
                    "name": "i686-13.2.0-release-posix-dwarf-msvcrt-rt_v11-rev1.7z",
                    "size": 10,
                    "browser_download_url": "https://example.invalid/i686.7z",
                },
                {
                    "name": "x86_64-13.2.0-release-posix-seh-ucrt-rt_v11-rev1.7z",
                    "size": 10,
                    "browser_download_url": "https://example.invalid/x64.7z",
                },
            ],
        },
        {"tag_name": "12.2.0-rt_v10-rev2", "published_at": None, "assets": []},
    ]
).encode()


def _zip_bytes(members: dict) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, data in members.items():
            zf.writestr(name, data)
    return buf.getvalue()


def _chunks(data: bytes, count: int) -> list[bytes]:
    step = max(1, -(-len(data) // count))
    return [data[i : i + step] for i in range(0, len(data), step)]


def _orchestrator(client_session=None, download_session=None, state=None):
    client = ReleasesClient(
        "https://example.invalid/releases", "test-agent", session=client_session
    )
    controller = TransferController("test-agent", session=download_session)
    return PipelineOrchestrator(client, controller, state=state)


async def _events(orchestrator: PipelineOrchestrator) -> list:
    orchestrator.channel.close()
    return [event async for event in orchestrator.channel]


def _percents(events, stage):
    return [
        e.percent
        for e in events
        if isinstance(e, ProgressEvent) and e.stage is stage and e.percent is not None
    ]


def _outcomes(events):
    return [e for e in events if isinstance(e, OutcomeEvent)]


class TestRefresh:
    @pytest.mark.asyncio
    async def test_refresh_replaces_releases(self, fake_session):
        orchestrator = _orchestrator(client_session=fake_session(body=RELEASES_JSON))

        releases = await orchestrator.refresh()

        assert [r.tag for r in releases] == ["13.2.0-rt_v11-rev1", "12.2.0-rt_v10-rev2"]
        assert orchestrator.state.releases == releases
        assert orchestrator.state.find_release().tag == "13.2.0-rt_v11-rev1"
        outcome = _outcomes(await _events(orchestrator))[-1]
        assert outcome.stage is Stage.REFRESH
        assert outcome.message == "Releases loaded (2)."

    @pytest.mark.asyncio
    async def test_network_error_keeps_previous_releases(
        self, fake_session, release_factory
    ):
        previous = (release_factory(),)
        orchestrator = _orchestrator(
            client_session=fake_session(error=aiohttp.ClientConnectionError("down")),
            state=AppState(releases=previous),
        )

        with pytest.raises(FetchError):
            await orchestrator.refresh()

        assert orchestrator.state.releases == previous
        outcome = _outcomes(await _events(orchestrator))[-1]
        assert outcome.status is OutcomeStatus.FAILED
        assert outcome.message == "Network error."

    @pytest.mark.asyncio
    async def test_malformed_payload(self, fake_session):
        orchestrator = _orchestrator(client_session=fake_session(body=b"<html>"))

        with pytest.raises(DecodeError):
            await orchestrator.refresh()

        assert orchestrator.state.releases == ()

    @pytest.mark.asyncio
    async def test_filters_survive_refresh(self, fake_session):
        orchestrator = _orchestrator(
            client_session=fake_session(body=RELEASES_JSON),
            state=AppState(filters=FilterSelection(arch=Arch.X86_64)),
        )
        await orchestrator.refresh()

        release = orchestrator.state.find_release()
        filtered = orchestrator.filtered_assets(release)
        assert [a.attributes.arch for a in filtered] == [Arch.X86_64]

        orchestrator.filter_engine.set_field(AttributeField.ARCH, None)
        assert len(orchestrator.filtered_assets(release)) == 2


class TestRun:
    @pytest.mark.asyncio
    async def test_download_only(self, tmp_path, fake_session, asset_factory):
        data = b"x" * 1000
        session = fake_session(
            _chunks(data, 10), headers={"Content-Length": str(len(data))}
        )
        orchestrator = _orchestrator(download_session=session)
        asset = asset_factory(size=len(data))

        outcome = await orchestrator.run(asset, tmp_path)

        assert outcome.succeeded
        assert outcome.message == "Download complete."
        assert (tmp_path / asset.name).read_bytes() == data
        events = await _events(orchestrator)
        percents = _percents(events, Stage.DOWNLOAD)
        assert percents == sorted(percents)
        assert percents[-1] == 100.0
        assert _outcomes(events) == [outcome]

    @pytest.mark.asyncio
    async def test_download_then_extract(self, tmp_path, fake_session, asset_factory):
        members = {f"mingw64/bin/tool{i}.exe": f"binary {i}".encode() for i in range(5)}
        data = _zip_bytes(members)
        session = fake_session(_chunks(data, 4))
        orchestrator = _orchestrator(download_session=session)
        asset = asset_factory(name="x86_64-test-release-posix-seh.zip", size=len(data))

        outcome = await orchestrator.run(asset, tmp_path, extract=True)

        assert outcome.succeeded
        assert outcome.stage is Stage.EXTRACT
        assert outcome.message == "Extract complete."
        target = tmp_path / "x86_64-test-release-posix-seh"
        for name, content in members.items():
            assert (target / name).read_bytes() == content

        events = await _events(orchestrator)
        extract_percents = _percents(events, Stage.EXTRACT)
        assert extract_percents[0] == 0.0
        assert extract_percents[-1] == 100.0
        assert len(extract_percents) == len(members) + 1
        assert len(_outcomes(events)) == 1

    @pytest.mark.asyncio
    async def test_cancel_mid_transfer(self, tmp_path, fake_session, asset_factory):
        data = b"y" * 1000
        orchestrator = None

        def cancel_at_30_percent(index):
            if index == 2:
                orchestrator.cancel()

        session = fake_session(
            _chunks(data, 10),
            headers={"Content-Length": str(len(data))},
            on_chunk=cancel_at_30_percent,
        )
        orchestrator = _orchestrator(download_session=session)

        outcome = await orchestrator.run(asset_factory(size=len(data)), tmp_path)

        assert outcome.status is OutcomeStatus.CANCELLED
        percents = _percents(await _events(orchestrator), Stage.DOWNLOAD)
        assert max(percents) == pytest.approx(30.0)
        assert 100.0 not in percents

    @pytest.mark.asyncio
    async def test_cancel_during_extraction_is_reported_and_ignored(
        self, tmp_path, fake_session, asset_factory
    ):
        data = _zip_bytes({"a.txt": b"a", "b.txt": b"b"})
        orchestrator = _orchestrator(download_session=fake_session([data]))
        extract = orchestrator.extractor.extract

        def extract_with_cancel(*args, **kwargs):
            orchestrator.cancel()
            return extract(*args, **kwargs)

        orchestrator.extractor.extract = extract_with_cancel
        asset = asset_factory(name="x86_64-test.zip", size=len(data))

        outcome = await orchestrator.run(asset, tmp_path, extract=True)

        assert outcome.succeeded
        assert (tmp_path / "x86_64-test" / "b.txt").read_bytes() == b"b"
        statuses = [
            e for e in await _events(orchestrator) if isinstance(e, StatusEvent)
        ]
        notices = [e for e in statuses if "cannot be cancelled" in e.message]
        assert len(notices) == 1
        assert notices[0].stage is Stage.EXTRACT
        assert not any(e.message == "Cancel requested..." for e in statuses)
        assert not orchestrator.cancel_flag.is_set()

    @pytest.mark.asyncio
    async def test_http_error_fails(self, tmp_path, fake_session, asset_factory):
        orchestrator = _orchestrator(download_session=fake_session(status=404))

        outcome = await orchestrator.run(asset_factory(), tmp_path, extract=True)

        assert outcome.status is OutcomeStatus.FAILED
        assert outcome.stage is Stage.DOWNLOAD
        assert outcome.message.startswith("Download failed:")

    @pytest.mark.asyncio
    async def test_bad_archive_fails_extraction(
        self, tmp_path, fake_session, asset_factory
    ):
        session = fake_session([b"definitely not an archive"])
        orchestrator = _orchestrator(download_session=session)

        outcome = await orchestrator.run(asset_factory(), tmp_path, extract=True)

        assert outcome.status is OutcomeStatus.FAILED
        assert outcome.stage is Stage.EXTRACT
        assert outcome.message.startswith("Extract failed:")
        events = await _events(orchestrator)
        # counting failed too, so extraction progress is indeterminate
        extract_events = [
            e for e in events if isinstance(e, ProgressEvent) and e.stage is Stage.EXTRACT
        ]
        assert all(e.indeterminate for e in extract_events)

    @pytest.mark.asyncio
    async def test_extract_archive_into_chosen_directory(self, tmp_path, zip_factory):
        archive = zip_factory(tmp_path / "pkg.zip", {"a.txt": b"a", "d/b.txt": b"b"})
        orchestrator = _orchestrator()

        outcome = await orchestrator.extract_archive(archive, tmp_path / "out")

        assert outcome.succeeded
        assert (tmp_path / "out" / "d" / "b.txt").read_bytes() == b"b"
        assert not (tmp_path / "pkg").exists()


class TestTaskHandle:
    @pytest.mark.asyncio
    async def test_second_start_is_rejected_while_busy(self, tmp_path, asset_factory):
        release = asyncio.Event()

        async def slow_transfer(*args, **kwargs):
            await release.wait()
            return 0

        orchestrator = _orchestrator()
        orchestrator.controller.transfer = AsyncMock(side_effect=slow_transfer)

        orchestrator.start(asset_factory(), tmp_path)
        await asyncio.sleep(0)
        assert orchestrator.busy
        with pytest.raises(OperationInProgressError):
            orchestrator.start(asset_factory(), tmp_path)

        release.set()
        outcome = await orchestrator.join()
        assert outcome.succeeded
        assert not orchestrator.busy

    @pytest.mark.asyncio
    async def test_join_without_task(self):
        assert await _orchestrator().join() is None

    @pytest.mark.asyncio
    async def test_shutdown_cancels_running_download(
        self, tmp_path, fake_session, asset_factory
    ):
        session = fake_session([b"a"] * 50)
        orchestrator = _orchestrator(download_session=session)

        task = orchestrator.start(asset_factory(size=50), tmp_path)
        await orchestrator.shutdown()

        assert task.done()
        assert task.result().status is OutcomeStatus.CANCELLED
        assert not orchestrator.busy
        await orchestrator.close()
        assert not session.closed  # injected sessions are left to their owner

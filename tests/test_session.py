"""Tests for scan sessions: state transitions, supersession and downloads."""

import asyncio
import time

import pytest

from conftest import encode_png, make_tilted_document
from docscan.config import ScanConfig
from docscan.engines.handle import EngineHandle
from docscan.engines.opencv_engine import OpenCVEngine
from docscan.errors import EngineUnavailable, InvalidInputKind, ProcessingError
from docscan.models import ImageFile, ProcessingState
from docscan.session import ScanSession


class SlowEngine(OpenCVEngine):
    def adaptive_threshold(self, gray, block_size, c):
        time.sleep(0.3)
        return super().adaptive_threshold(gray, block_size, c)


def _png_file(name, angle=10.0):
    return ImageFile(name, "image/png", encode_png(make_tilted_document(angle=angle)))


@pytest.fixture
def ready_session(engine, presenter):
    return ScanSession(EngineHandle.ready(engine), presenter=presenter)


class TestSelection:
    def test_non_image_is_rejected(self, ready_session, presenter):
        async def scenario():
            return await ready_session.select(ImageFile("notes.txt", "text/plain", b"hi"))

        assert asyncio.run(scenario()) is None
        assert presenter.notices == [InvalidInputKind.user_message]
        assert ready_session.state is ProcessingState.IDLE
        assert not ready_session.view().has_preview
        assert len(ready_session.loader.blobs) == 0

    def test_successful_run(self, ready_session, presenter, document_file):
        async def scenario():
            await ready_session.select(document_file)
            return await ready_session.wait()

        result = asyncio.run(scenario())
        assert result is not None
        assert ready_session.result is result
        assert ready_session.state is ProcessingState.DONE
        assert ready_session.source.name == "document.png"
        assert presenter.states == [ProcessingState.RUNNING, ProcessingState.DONE]
        assert presenter.views[-1].processed is result
        assert presenter.views[-1].original_handle == ready_session.original_handle

    def test_rejection_keeps_previous_result(self, ready_session, document_file):
        async def scenario():
            await ready_session.select(document_file)
            first = await ready_session.wait()
            await ready_session.select(ImageFile("notes.txt", "text/plain", b"hi"))
            return first

        first = asyncio.run(scenario())
        assert ready_session.result is first
        assert ready_session.state is ProcessingState.DONE

    def test_white_page(self, ready_session, white_page):
        file = ImageFile("white.png", "image/png", encode_png(white_page))

        async def scenario():
            await ready_session.select(file)
            return await ready_session.wait()

        result = asyncio.run(scenario())
        assert result.deskew_angle == 0.0
        assert (result.pixels == 255).all()


class TestEngineReadiness:
    def test_waits_for_engine(self, engine, presenter, document_file):
        handle = EngineHandle(factory=None)
        session = ScanSession(handle, presenter=presenter)

        async def scenario():
            task = await session.select(document_file)
            await asyncio.sleep(0.05)
            assert session.state is ProcessingState.AWAITING_ENGINE
            assert not task.done()
            handle.mark_ready(engine)
            return await session.wait()

        result = asyncio.run(scenario())
        assert result is not None
        assert presenter.states == [
            ProcessingState.AWAITING_ENGINE,
            ProcessingState.RUNNING,
            ProcessingState.DONE,
        ]

    def test_engine_timeout_fails_run(self, presenter, document_file):
        session = ScanSession(
            EngineHandle(factory=None),
            config=ScanConfig(engine_timeout=0.05),
            presenter=presenter,
        )

        async def scenario():
            await session.select(document_file)
            return await session.wait()

        assert asyncio.run(scenario()) is None
        assert session.state is ProcessingState.FAILED
        assert session.message == EngineUnavailable.user_message
        assert presenter.notices == [EngineUnavailable.user_message]

    def test_start_engine_renders(self, presenter):
        session = ScanSession(EngineHandle(OpenCVEngine), presenter=presenter)

        async def scenario():
            await session.start_engine()

        asyncio.run(scenario())
        assert session.handle.is_ready
        assert presenter.views[0].state is ProcessingState.IDLE


class TestFailures:
    def test_undecodable_image(self, ready_session, presenter):
        file = ImageFile("broken.png", "image/png", b"not a png at all")

        async def scenario():
            await ready_session.select(file)
            return await ready_session.wait()

        assert asyncio.run(scenario()) is None
        assert ready_session.state is ProcessingState.FAILED
        assert ready_session.result is None
        assert ready_session.download() is None
        assert presenter.notices == [ProcessingError.user_message]

    def test_retry_after_failure(self, ready_session, document_file):
        async def scenario():
            await ready_session.select(ImageFile("broken.png", "image/png", b"junk"))
            await ready_session.wait()
            await ready_session.select(document_file)
            return await ready_session.wait()

        assert asyncio.run(scenario()) is not None
        assert ready_session.state is ProcessingState.DONE
        assert ready_session.message is None

    def test_empty_image_is_a_processing_failure(self, ready_session, presenter):
        async def scenario():
            await ready_session.select(ImageFile("empty.png", "image/png", b""))
            return await ready_session.wait()

        assert asyncio.run(scenario()) is None
        assert ready_session.state is ProcessingState.FAILED
        assert presenter.notices == [ProcessingError.user_message]


class TestSupersession:
    def test_latest_selection_wins(self, presenter):
        engine = SlowEngine()
        session = ScanSession(EngineHandle.ready(engine), presenter=presenter)

        async def scenario():
            first = await session.select(_png_file("first.png", angle=5.0))
            await asyncio.sleep(0.1)
            await session.select(_png_file("second.png", angle=-8.0))
            result = await session.wait()
            # Let the superseded worker thread finish
            await asyncio.sleep(0.5)
            return first, result

        first, result = asyncio.run(scenario())
        assert first.cancelled()
        assert result.source_name == "second.png"
        assert session.result is result
        assert session.source.name == "second.png"
        assert session.state is ProcessingState.DONE
        assert all(
            v.processed is None or v.processed.source_name == "second.png"
            for v in presenter.views
        )
        assert engine.ledger.live == 0

    def test_back_to_back_selection(self, ready_session):
        async def scenario():
            await ready_session.select(_png_file("first.png"))
            await ready_session.select(_png_file("second.png"))
            return await ready_session.wait()

        result = asyncio.run(scenario())
        assert result.source_name == "second.png"


class TestResources:
    def test_previous_blob_released(self, ready_session, document_file):
        async def scenario():
            await ready_session.select(document_file)
            await ready_session.wait()
            first_handle = ready_session.original_handle
            await ready_session.select(_png_file("second.png"))
            await ready_session.wait()
            return first_handle

        first_handle = asyncio.run(scenario())
        blobs = ready_session.loader.blobs
        assert first_handle not in blobs
        assert ready_session.original_handle in blobs
        assert len(blobs) == 1

    def test_close_releases_blob(self, ready_session, document_file):
        async def scenario():
            await ready_session.select(document_file)
            await ready_session.wait()
            ready_session.close()

        asyncio.run(scenario())
        assert len(ready_session.loader.blobs) == 0
        assert ready_session.original_handle is None

    def test_repeated_runs_release_buffers(self, engine, presenter):
        session = ScanSession(EngineHandle.ready(engine), presenter=presenter)

        async def scenario():
            for i in range(4):
                await session.select(_png_file(f"page{i}.png", angle=3.0 * i))
                await session.wait()
            await session.select(ImageFile("broken.png", "image/png", b"junk"))
            await session.wait()

        asyncio.run(scenario())
        assert engine.ledger.allocated > 0
        assert engine.ledger.live == 0


class TestDownload:
    def test_download(self, ready_session, document_file):
        async def scenario():
            await ready_session.select(document_file)
            await ready_session.wait()

        asyncio.run(scenario())
        download = ready_session.download()
        assert download.filename == "scanned-document.png"
        assert download.content_type == "image/png"
        assert download.data.startswith(b"\x89PNG")

    def test_download_save(self, ready_session, document_file, tmp_path):
        async def scenario():
            await ready_session.select(document_file)
            await ready_session.wait()

        asyncio.run(scenario())
        path = ready_session.download().save(tmp_path)
        assert path == tmp_path / "scanned-document.png"
        assert path.read_bytes().startswith(b"\x89PNG")

    def test_no_download_before_result(self, ready_session):
        assert ready_session.download() is None

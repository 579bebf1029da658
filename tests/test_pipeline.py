"""Tests for the scan pipeline."""

import threading

import cv2
import numpy as np
import pytest

from conftest import dominant_angle, make_tilted_document
from docscan.config import ScanConfig
from docscan.engines.opencv_engine import OpenCVEngine
from docscan.errors import ProcessingError, RunCancelled
from docscan.preprocessing.scan_pipeline import PipelineRunner


class BrokenMorphologyEngine(OpenCVEngine):
    def morph_open(self, binary, kernel_size):
        raise cv2.error("morphology failed")


@pytest.fixture
def runner(engine):
    return PipelineRunner(engine)


class TestPipelineRunner:
    def test_preserves_dimensions(self, runner):
        rng = np.random.default_rng(7)
        image = rng.integers(0, 256, size=(77, 123, 3), dtype=np.uint8)
        result = runner.run(image)
        assert (result.height, result.width) == (77, 123)
        assert result.pixels.shape == (77, 123, 4)

    def test_accepts_grayscale_input(self, runner):
        image = np.full((50, 60), 200, dtype=np.uint8)
        result = runner.run(image)
        assert result.pixels.shape == (50, 60, 4)

    def test_white_page_stays_white(self, runner, white_page):
        result = runner.run(white_page)
        assert result.deskew_angle == 0.0
        assert np.all(result.pixels == 255)

    def test_output_is_binary(self, runner, white_page):
        result = runner.run(white_page)
        assert set(np.unique(result.pixels[:, :, 0])) <= {0, 255}

    def test_tilted_document_is_straightened(self, runner, tilted_document):
        result = runner.run(tilted_document, source_name="document.png")
        assert abs(abs(result.deskew_angle) - 10.0) < 1.5
        assert abs(dominant_angle(result.pixels)) < 1.5
        assert result.source_name == "document.png"

    def test_applied_steps(self, runner, tilted_document):
        result = runner.run(tilted_document)
        assert result.applied_steps == (
            "Grayscale",
            "Contrast Enhanced",
            "Noise Reduced",
            "Deskewed",
        )

    def test_blurred_preset(self, engine, tilted_document):
        runner = PipelineRunner(engine, ScanConfig(preset="blurred"))
        result = runner.run(tilted_document)
        assert result.pixels.shape[:2] == tilted_document.shape[:2]

    def test_not_idempotent_on_own_output(self, runner, tilted_document):
        # Thresholding a binary image is not the same as thresholding the
        # photo, so a second pass is only required to keep the shape.
        first = runner.run(tilted_document)
        second = runner.run(first.pixels)
        assert second.pixels.shape == first.pixels.shape

    def test_result_is_independent_copy(self, runner, white_page):
        result = runner.run(white_page)
        assert result.pixels.flags["OWNDATA"]

    def test_png_export(self, runner, white_page):
        png = runner.run(white_page).to_png()
        assert png.startswith(b"\x89PNG")
        decoded = cv2.imdecode(np.frombuffer(png, np.uint8), cv2.IMREAD_UNCHANGED)
        assert decoded.shape == (240, 320, 4)

    def test_empty_image(self, runner):
        with pytest.raises(ProcessingError):
            runner.run(np.zeros((0, 0, 3), dtype=np.uint8))


class TestFailures:
    def test_engine_error_becomes_processing_error(self, white_page):
        runner = PipelineRunner(BrokenMorphologyEngine())
        with pytest.raises(ProcessingError) as excinfo:
            runner.run(white_page)
        assert isinstance(excinfo.value.__cause__, cv2.error)

    def test_cancelled_before_start(self, runner, white_page):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(RunCancelled):
            runner.run(white_page, cancel=cancel)


class TestBufferRelease:
    def test_successful_runs_release_everything(self, engine):
        runner = PipelineRunner(engine)
        for angle in (0.0, 10.0, -7.0):
            runner.run(make_tilted_document(angle=angle))
        assert engine.ledger.allocated > 0
        assert engine.ledger.live == 0

    def test_failed_runs_release_everything(self, white_page):
        engine = BrokenMorphologyEngine()
        runner = PipelineRunner(engine)
        for _ in range(3):
            with pytest.raises(ProcessingError):
                runner.run(white_page)
        assert engine.ledger.allocated > 0
        assert engine.ledger.live == 0

    def test_cancelled_runs_release_everything(self, engine, white_page):
        cancel = threading.Event()
        cancel.set()
        runner = PipelineRunner(engine)
        with pytest.raises(RunCancelled):
            runner.run(white_page, cancel=cancel)
        assert engine.ledger.allocated == 1
        assert engine.ledger.live == 0

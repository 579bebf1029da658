"""Fixed preprocessing pipeline that turns a photo into a scanned-looking page."""

import logging
import threading
from typing import Optional

import numpy as np

from docscan.config import ScanConfig
from docscan.engines.base import VisionEngine
from docscan.engines.buffers import BufferScope
from docscan.errors import ProcessingError, RunCancelled, ScanError
from docscan.models import ProcessedImage
from docscan.preprocessing.deskew import deskew_with_angle

logger = logging.getLogger(__name__)

STEP_GRAYSCALE = "Grayscale"
STEP_CONTRAST = "Contrast Enhanced"
STEP_DENOISE = "Noise Reduced"
STEP_DESKEW = "Deskewed"


class PipelineRunner:
    """
    Runs the scan pipeline on a decoded bitmap.

    Steps:
    1. Grayscale conversion
    2. Optional Gaussian blur (preset dependent)
    3. Adaptive Gaussian thresholding
    4. Morphological opening
    5. Deskew
    6. Expansion back to a 4-channel displayable image

    Every intermediate buffer is owned by a BufferScope and released when the
    run ends, including when it fails or is cancelled.
    """

    def __init__(self, engine: VisionEngine, config: Optional[ScanConfig] = None):
        self.engine = engine
        self.config = config or ScanConfig()

    def run(
        self,
        image: np.ndarray,
        source_name: str = "",
        cancel: Optional[threading.Event] = None,
    ) -> ProcessedImage:
        """
        Process one bitmap.

        Args:
            image: Decoded BGR (or grayscale) bitmap.
            source_name: Name of the originating file, kept for reporting.
            cancel: Set by the caller when this run has been superseded.

        Returns:
            ProcessedImage with the same width and height as ``image``.

        Raises:
            ProcessingError: If any stage fails.
            RunCancelled: If ``cancel`` was set before the run finished.
        """
        if image is None or image.size == 0:
            raise ProcessingError("Empty image")

        with self.engine.scope() as scope:
            try:
                return self._run_stages(image, source_name, scope, cancel)
            except ScanError:
                raise
            except Exception as exc:
                logger.exception("Pipeline failed for %s", source_name or "<array>")
                raise ProcessingError(f"Pipeline failed: {exc}") from exc

    def _run_stages(
        self,
        image: np.ndarray,
        source_name: str,
        scope: BufferScope,
        cancel: Optional[threading.Event],
    ) -> ProcessedImage:
        engine = self.engine
        preset = self.config.threshold
        steps = []

        gray = scope.adopt(engine.to_grayscale(image))
        steps.append(STEP_GRAYSCALE)
        _check_cancelled(cancel)

        if preset.blur_kernel is not None:
            gray = scope.adopt(engine.gaussian_blur(gray, preset.blur_kernel))

        binary = scope.adopt(engine.adaptive_threshold(gray, preset.block_size, preset.c))
        steps.append(STEP_CONTRAST)
        _check_cancelled(cancel)

        binary = scope.adopt(engine.morph_open(binary, self.config.morph_kernel_size))
        steps.append(STEP_DENOISE)
        _check_cancelled(cancel)

        deskewed = deskew_with_angle(engine, binary, scope)
        steps.append(STEP_DESKEW)
        _check_cancelled(cancel)

        final = scope.adopt(engine.to_display(deskewed.image))
        logger.debug(
            "Processed %s: %dx%d, deskew %.2f deg",
            source_name or "<array>", final.shape[1], final.shape[0], deskewed.angle,
        )
        return ProcessedImage(
            pixels=final.copy(),
            source_name=source_name,
            deskew_angle=deskewed.angle,
            applied_steps=tuple(steps),
        )


def _check_cancelled(cancel: Optional[threading.Event]) -> None:
    if cancel is not None and cancel.is_set():
        raise RunCancelled("Run superseded by a newer selection")

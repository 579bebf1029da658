"""Public API for turning document photos into scanned-looking pages."""

from pathlib import Path

import numpy as np

from docscan.config import DEFAULT_PRESET, ScanConfig
from docscan.engines.base import VisionEngine
from docscan.loader import ImageLoader
from docscan.models import ImageFile, ProcessedImage
from docscan.preprocessing.scan_pipeline import PipelineRunner


class DocumentScanner:
    """
    Synchronous entry point for single-shot scans.

    Usage:
        scanner = DocumentScanner()
        result = scanner.scan("path/to/photo.jpg")
        scanner.save(result, "scanned-document.png")
    """

    def __init__(
        self,
        preset: str = DEFAULT_PRESET,
        config: ScanConfig | None = None,
        engine: VisionEngine | None = None,
    ):
        """
        Initialize the scanner.

        Args:
            preset: Threshold preset name ('scanner' or 'blurred'). Ignored
                when ``config`` is given.
            config: Full scan configuration.
            engine: Vision engine to use (default: OpenCVEngine).
        """
        self.config = config or ScanConfig(preset=preset)
        if engine is None:
            from docscan.engines.opencv_engine import OpenCVEngine

            engine = OpenCVEngine()
        self.engine = engine
        self._loader = ImageLoader()
        self._runner = PipelineRunner(engine, self.config)

    def scan(self, image_path: str | Path) -> ProcessedImage:
        """
        Scan an image file.

        Raises:
            FileNotFoundError: If the image file doesn't exist.
            InvalidInputKind: If the file is not an image.
            ProcessingError: If the image cannot be decoded or processed.
        """
        return self.scan_file(ImageFile.from_path(image_path))

    def scan_file(self, file: ImageFile) -> ProcessedImage:
        handle = self._loader.accept(file)
        try:
            source = self._loader.decode(self.engine, file, handle)
            return self._runner.run(source.pixels, source_name=source.name)
        finally:
            self._loader.release(handle)

    def scan_array(self, image: np.ndarray, name: str = "") -> ProcessedImage:
        """Scan a numpy array (BGR or grayscale image)."""
        return self._runner.run(image, source_name=name)

    def save(self, result: ProcessedImage, path: str | Path | None = None) -> Path:
        """Write a result as PNG. Defaults to the download filename in the current directory."""
        path = Path(path) if path is not None else Path(self.config.download_filename)
        if path.is_dir():
            path = path / self.config.download_filename
        path.write_bytes(result.to_png())
        return path

"""Data models for document scan sessions."""

import mimetypes
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from docscan.config import DOWNLOAD_FILENAME
from docscan.errors import ProcessingError


class ProcessingState(Enum):
    IDLE = "idle"
    AWAITING_ENGINE = "awaiting_engine"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ImageFile:
    """A user-supplied file, as handed over by a picker or a drop target."""

    name: str
    content_type: str
    data: bytes

    @classmethod
    def from_path(cls, path: str | Path) -> "ImageFile":
        """Read a file from disk, guessing its content type from the extension."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Image not found: {path}")
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            content_type=content_type or "application/octet-stream",
            data=path.read_bytes(),
        )

    @property
    def is_image(self) -> bool:
        return self.content_type.lower().startswith("image/")


@dataclass
class SourceImage:
    """Decoded bitmap of the most recently accepted file."""

    pixels: np.ndarray  # Shape (H, W, 3), dtype uint8, BGR order.
    name: str = ""
    handle: Optional[str] = None  # Blob handle of the original bytes.

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]


@dataclass(frozen=True)
class ProcessedImage:
    """Result of one pipeline run. Never mutated after creation."""

    pixels: np.ndarray  # Shape (H, W, 4), dtype uint8, BGRA order.
    source_name: str = ""
    deskew_angle: float = 0.0
    applied_steps: tuple[str, ...] = ()

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    def to_png(self) -> bytes:
        ok, encoded = cv2.imencode(".png", self.pixels)
        if not ok:
            raise ProcessingError("PNG encoding failed")
        return encoded.tobytes()

    def to_dict(self) -> dict:
        return {
            "source": self.source_name,
            "width": self.width,
            "height": self.height,
            "deskew_angle": round(self.deskew_angle, 4),
            "applied_steps": list(self.applied_steps),
        }


@dataclass(frozen=True)
class Download:
    """A downloadable artifact."""

    data: bytes
    filename: str = DOWNLOAD_FILENAME
    content_type: str = "image/png"

    def save(self, directory: str | Path = ".") -> Path:
        path = Path(directory) / self.filename
        path.write_bytes(self.data)
        return path


@dataclass
class PreviewView:
    """Snapshot of what a presenter should currently show."""

    state: ProcessingState
    original_handle: Optional[str] = None
    processed: Optional[ProcessedImage] = None
    engine_ready: bool = False
    message: Optional[str] = None

    @property
    def has_preview(self) -> bool:
        return self.original_handle is not None or self.processed is not None

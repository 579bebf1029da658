"""Abstract interface for vision engines used by the scan pipeline."""

from abc import ABC, abstractmethod

import numpy as np

from docscan.engines.buffers import BufferLedger, BufferScope


class VisionEngine(ABC):
    """
    Operations the scan pipeline needs from a computer-vision backend.

    All operations take and return in-memory bitmaps. Buffers returned by an
    engine must be adopted by a BufferScope obtained from ``scope()``.
    """

    def __init__(self):
        self.ledger = BufferLedger()

    def scope(self) -> BufferScope:
        return BufferScope(self.ledger)

    @property
    @abstractmethod
    def name(self) -> str:
        """Engine identifier name."""

    @abstractmethod
    def decode(self, data: bytes) -> np.ndarray | None:
        """Decode encoded image bytes into a 3-channel bitmap, or None."""

    @abstractmethod
    def to_grayscale(self, image: np.ndarray) -> np.ndarray:
        """Convert a color image to a single channel."""

    @abstractmethod
    def gaussian_blur(self, gray: np.ndarray, kernel: tuple[int, int]) -> np.ndarray:
        """Smooth a single-channel image."""

    @abstractmethod
    def adaptive_threshold(self, gray: np.ndarray, block_size: int, c: int) -> np.ndarray:
        """Binarize with a Gaussian-weighted local mean (foreground black, background white)."""

    @abstractmethod
    def morph_open(self, binary: np.ndarray, kernel_size: int) -> np.ndarray:
        """Erode then dilate with a rectangular structuring element."""

    @abstractmethod
    def invert(self, binary: np.ndarray) -> np.ndarray:
        """Swap black and white."""

    @abstractmethod
    def find_contours(self, mask: np.ndarray) -> list[np.ndarray]:
        """Flat list of simplified contours around non-zero regions."""

    @abstractmethod
    def contour_area(self, contour: np.ndarray) -> float:
        """Area enclosed by a contour."""

    @abstractmethod
    def min_area_rect(self, contour: np.ndarray) -> tuple:
        """Minimum-area rotated rectangle as ((cx, cy), (w, h), angle)."""

    @abstractmethod
    def rotation_matrix(self, center: tuple[float, float], angle: float, scale: float) -> np.ndarray:
        """2x3 affine matrix rotating by ``angle`` degrees counter-clockwise about ``center``."""

    @abstractmethod
    def warp_affine(self, image: np.ndarray, matrix: np.ndarray, fill: int) -> np.ndarray:
        """Apply an affine matrix with linear interpolation, keeping the input size."""

    @abstractmethod
    def to_display(self, gray: np.ndarray) -> np.ndarray:
        """Expand a single-channel image to 4 channels for display and export."""

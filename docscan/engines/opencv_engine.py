"""OpenCV implementation of the vision engine."""

import cv2
import numpy as np

from docscan.config import MAX_VALUE
from docscan.engines.base import VisionEngine


def is_opencv_available() -> bool:
    """Check that the OpenCV binding provides the operations the pipeline needs."""
    required = (
        "imdecode",
        "cvtColor",
        "adaptiveThreshold",
        "morphologyEx",
        "findContours",
        "contourArea",
        "minAreaRect",
        "getRotationMatrix2D",
        "warpAffine",
    )
    return all(hasattr(cv2, attr) for attr in required)


class OpenCVEngine(VisionEngine):
    """Vision engine backed by opencv-python."""

    def __init__(self):
        if not is_opencv_available():
            raise RuntimeError(
                "OpenCV binding is incomplete. "
                "Install with: pip install opencv-python"
            )
        super().__init__()

    @property
    def name(self) -> str:
        return f"opencv-{cv2.__version__}"

    def decode(self, data: bytes) -> np.ndarray | None:
        buf = np.frombuffer(data, dtype=np.uint8)
        if buf.size == 0:
            return None
        return cv2.imdecode(buf, cv2.IMREAD_COLOR)

    def to_grayscale(self, image: np.ndarray) -> np.ndarray:
        if len(image.shape) == 2:
            return image.copy()
        if image.shape[2] == 4:
            return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)

    def gaussian_blur(self, gray: np.ndarray, kernel: tuple[int, int]) -> np.ndarray:
        return cv2.GaussianBlur(gray, kernel, 0)

    def adaptive_threshold(self, gray: np.ndarray, block_size: int, c: int) -> np.ndarray:
        return cv2.adaptiveThreshold(
            gray, MAX_VALUE, cv2.ADAPTIVE_THRESH_GAUSSIAN_C, cv2.THRESH_BINARY, block_size, c
        )

    def morph_open(self, binary: np.ndarray, kernel_size: int) -> np.ndarray:
        kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (kernel_size, kernel_size))
        return cv2.morphologyEx(binary, cv2.MORPH_OPEN, kernel)

    def invert(self, binary: np.ndarray) -> np.ndarray:
        return cv2.bitwise_not(binary)

    def find_contours(self, mask: np.ndarray) -> list[np.ndarray]:
        contours, _ = cv2.findContours(mask, cv2.RETR_LIST, cv2.CHAIN_APPROX_SIMPLE)
        return list(contours)

    def contour_area(self, contour: np.ndarray) -> float:
        return float(cv2.contourArea(contour))

    def min_area_rect(self, contour: np.ndarray) -> tuple:
        return cv2.minAreaRect(contour)

    def rotation_matrix(self, center: tuple[float, float], angle: float, scale: float) -> np.ndarray:
        return cv2.getRotationMatrix2D(center, angle, scale)

    def warp_affine(self, image: np.ndarray, matrix: np.ndarray, fill: int) -> np.ndarray:
        h, w = image.shape[:2]
        return cv2.warpAffine(
            image, matrix, (w, h),
            flags=cv2.INTER_LINEAR,
            borderMode=cv2.BORDER_CONSTANT,
            borderValue=(fill, fill, fill, fill),
        )

    def to_display(self, gray: np.ndarray) -> np.ndarray:
        return cv2.cvtColor(gray, cv2.COLOR_GRAY2BGRA)

"""Rotation correction for thresholded document images."""

import logging
from dataclasses import dataclass

import numpy as np

from docscan.config import BORDER_FILL, DESKEW_ANGLE_LIMIT
from docscan.engines.base import VisionEngine
from docscan.engines.buffers import BufferScope

logger = logging.getLogger(__name__)


@dataclass
class DeskewResult:
    image: np.ndarray
    angle: float = 0.0
    contour_found: bool = False


def normalize_angle(angle: float) -> float:
    """
    Fold a bounding-rectangle angle into [-45, 45] degrees.

    A rectangle's orientation is only defined modulo 90 degrees, so engines
    report it in [-90, 0) or [0, 90) depending on their convention.
    """
    if angle < -DESKEW_ANGLE_LIMIT:
        angle += 90
    elif angle > DESKEW_ANGLE_LIMIT:
        angle -= 90
    return angle


def find_document_contour(engine: VisionEngine, binary: np.ndarray, scope: BufferScope):
    """Return the contour with the largest enclosed area, or None if there is none.

    Foreground is the dark ink of the binary image, so contours are traced on
    its inverse.
    """
    mask = scope.adopt(engine.invert(binary))
    best, best_area = None, 0.0
    for contour in engine.find_contours(mask):
        area = engine.contour_area(contour)
        if area > best_area:
            best, best_area = contour, area
    return best


def estimate_skew(engine: VisionEngine, binary: np.ndarray, scope: BufferScope) -> float | None:
    """Angle in degrees that aligns the dominant contour with the image axes."""
    contour = find_document_contour(engine, binary, scope)
    if contour is None:
        return None
    raw_angle = engine.min_area_rect(contour)[-1]
    angle = normalize_angle(raw_angle)
    logger.debug("Dominant contour angle %.2f, correcting by %.2f", raw_angle, angle)
    return angle


def deskew_with_angle(
    engine: VisionEngine, binary: np.ndarray, scope: BufferScope
) -> DeskewResult:
    """
    Rotate a binary image so the dominant document edge is axis-aligned.

    Steps:
    1. Find the largest contour of foreground (dark) pixels
    2. Fit a minimum-area rectangle and normalize its angle
    3. Rotate about the image center, filling exposed borders with white

    Returns a copy of the input when no contour is found.
    """
    angle = estimate_skew(engine, binary, scope)
    if angle is None:
        logger.debug("No contours found, skipping rotation")
        return DeskewResult(image=scope.adopt(binary.copy()))

    h, w = binary.shape[:2]
    center = (w / 2, h / 2)
    matrix = scope.adopt(engine.rotation_matrix(center, angle, 1.0))
    rotated = scope.adopt(engine.warp_affine(binary, matrix, BORDER_FILL))
    return DeskewResult(image=rotated, angle=angle, contour_found=True)


def deskew(engine: VisionEngine, binary: np.ndarray, scope: BufferScope) -> np.ndarray:
    return deskew_with_angle(engine, binary, scope).image

import cv2
import numpy as np
import pytest

from docscan.engines.opencv_engine import OpenCVEngine
from docscan.models import ImageFile
from docscan.presenter import Presenter


def make_tilted_document(angle=10.0, size=(400, 300), doc_size=(200, 130)):
    """Bright rectangle rotated by ``angle`` degrees on a dark background (BGR)."""
    w, h = size
    image = np.full((h, w, 3), 60, dtype=np.uint8)
    box = cv2.boxPoints(((w / 2, h / 2), doc_size, angle))
    cv2.fillPoly(image, [np.round(box).astype(np.int32)], (220, 220, 220))
    return image


def encode_png(image):
    ok, encoded = cv2.imencode(".png", image)
    assert ok
    return encoded.tobytes()


def dominant_angle(display_image):
    """Normalized angle of the largest dark region in a processed image."""
    from docscan.preprocessing.deskew import normalize_angle

    gray = display_image[:, :, 0] if display_image.ndim == 3 else display_image
    mask = np.where(gray < 128, 255, 0).astype(np.uint8)
    contours, _ = cv2.findContours(mask, cv2.RETR_LIST, cv2.CHAIN_APPROX_SIMPLE)
    largest = max(contours, key=cv2.contourArea)
    return normalize_angle(cv2.minAreaRect(largest)[-1])


class RecordingPresenter(Presenter):
    def __init__(self):
        self.views = []
        self.notices = []

    @property
    def states(self):
        return [v.state for v in self.views]

    def render(self, view):
        self.views.append(view)

    def notify(self, message):
        self.notices.append(message)


@pytest.fixture
def engine():
    return OpenCVEngine()


@pytest.fixture
def white_page():
    return np.full((240, 320, 3), 255, dtype=np.uint8)


@pytest.fixture
def tilted_document():
    return make_tilted_document()


@pytest.fixture
def document_file(tilted_document):
    return ImageFile("document.png", "image/png", encode_png(tilted_document))


@pytest.fixture
def presenter():
    return RecordingPresenter()

import io

import pytest
from PIL import Image

from passportcrop.cropper import BoundingBox, DetectedFace
from passportcrop.detector import init_detector, reset_detector


def make_face(x, y, width, height, score=0.9):
    return DetectedFace(box=BoundingBox(x=x, y=y, width=width, height=height), score=score)


class FakeDetector:
    """Returns a fixed list of faces and records every call."""

    def __init__(self, faces=None):
        self.faces = list(faces or [])
        self.calls = []

    def detect_faces(self, image):
        self.calls.append(image.size)
        return list(self.faces)


class BrokenDetector:
    def detect_faces(self, image):
        raise RuntimeError("inference exploded")


def image_bytes(size=(400, 400), fmt="JPEG", color=(200, 180, 160)):
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def jpeg_bytes():
    return image_bytes()


@pytest.fixture
def registered_detector():
    detector = FakeDetector([make_face(100, 100, 100, 100, score=0.87)])
    reset_detector()
    init_detector(detector)
    yield detector
    reset_detector()

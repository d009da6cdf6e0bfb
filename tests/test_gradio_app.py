import pytest

pytest.importorskip("gradio")

from passportcrop import gradio_app
from passportcrop.detector import reset_detector

from conftest import FakeDetector, make_face


def write_photo(tmp_path, jpeg_bytes):
    path = tmp_path / "photo.jpg"
    path.write_bytes(jpeg_bytes)
    return str(path)


def test_crop_photo_success(tmp_path, jpeg_bytes, registered_detector):
    img, msg = gradio_app.crop_photo(write_photo(tmp_path, jpeg_bytes))
    assert img.size == (350, 450)
    assert msg.startswith("✅ Face confidence 87.0%")
    assert "102x133 at (98, 73)" in msg


def test_crop_photo_no_upload():
    assert gradio_app.crop_photo(None) == (None, "❌ No file uploaded.")


def test_crop_photo_no_face(tmp_path, jpeg_bytes, registered_detector):
    registered_detector.faces = []
    img, msg = gradio_app.crop_photo(write_photo(tmp_path, jpeg_bytes))
    assert img is None
    assert "No face detected" in msg


def test_crop_photo_without_detector(tmp_path, jpeg_bytes):
    reset_detector()
    img, msg = gradio_app.crop_photo(write_photo(tmp_path, jpeg_bytes))
    assert img is None
    assert "not loaded" in msg

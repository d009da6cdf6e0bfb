import base64
import io
import json

import pytest
from PIL import Image

from passportcrop.cropper import CropRegion
from passportcrop.error_codes import NoFaceDetectedError
from passportcrop.services import crop_service
from passportcrop.services.crop_service import (
    CropResult,
    crop_passport_photo,
    crop_passport_photo_async,
    format_crop_response,
    plan_crop,
)

from conftest import BrokenDetector, FakeDetector, image_bytes, make_face


class RecordingTransformer:
    def __init__(self):
        self.calls = []

    def extract_and_resize(self, image, region, out_width, out_height):
        self.calls.append((image.size, region, out_width, out_height))
        return b"jpeg-bytes"


def test_pipeline_uses_largest_face(jpeg_bytes):
    detector = FakeDetector([make_face(10, 10, 20, 20, score=0.99), make_face(100, 100, 100, 100, score=0.6)])
    transformer = RecordingTransformer()

    result = crop_passport_photo(jpeg_bytes, detector, transformer)

    assert detector.calls == [(400, 400)]
    assert transformer.calls == [((400, 400), CropRegion(left=98, top=73, width=102, height=133), 350, 450)]
    assert result.image == b"jpeg-bytes"
    assert result.face.score == 0.6
    assert result.original_size == len(jpeg_bytes)


def test_pipeline_real_transformer_returns_passport_jpeg(jpeg_bytes):
    result = crop_passport_photo(jpeg_bytes, FakeDetector([make_face(100, 100, 100, 100)]))
    with Image.open(io.BytesIO(result.image)) as img:
        assert img.format == "JPEG"
        assert img.size == (350, 450)


def test_no_face_skips_selector_and_geometry(jpeg_bytes, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("should not be called")

    monkeypatch.setattr(crop_service, "select_largest_face", fail)
    monkeypatch.setattr(crop_service, "calculate_passport_crop", fail)
    transformer = RecordingTransformer()

    with pytest.raises(NoFaceDetectedError):
        crop_passport_photo(jpeg_bytes, FakeDetector([]), transformer)
    assert transformer.calls == []


def test_plan_crop_empty_raises():
    with pytest.raises(NoFaceDetectedError, match="No face detected"):
        plan_crop([], 100, 100)


def test_detector_failure_propagates(jpeg_bytes):
    with pytest.raises(RuntimeError, match="inference exploded"):
        crop_passport_photo(jpeg_bytes, BrokenDetector(), RecordingTransformer())


def test_async_pipeline_matches_sync(jpeg_bytes):
    import anyio

    detector = FakeDetector([make_face(100, 100, 100, 100)])

    async def run():
        return await crop_passport_photo_async(jpeg_bytes, detector, RecordingTransformer())

    result = anyio.run(run)
    assert result.region == CropRegion(left=98, top=73, width=102, height=133)
    assert result.original_size == len(jpeg_bytes)


def _result():
    return CropResult(
        image=b"\xff\xd8abc",
        region=CropRegion(left=0, top=0, width=10, height=13),
        face=make_face(0, 0, 5, 5, score=0.75),
        original_size=1234,
    )


def test_format_binary_response():
    response = format_crop_response(_result())
    assert response.media_type == "image/jpeg"
    assert response.body == b"\xff\xd8abc"


def test_format_base64_response():
    response = format_crop_response(_result(), as_base64=True)
    payload = json.loads(response.body)
    prefix = "data:image/jpeg;base64,"
    assert payload["image"].startswith(prefix)
    assert base64.b64decode(payload["image"][len(prefix):]) == b"\xff\xd8abc"
    assert payload["meta"] == {"originalSize": 1234, "faceConfidence": 0.75}

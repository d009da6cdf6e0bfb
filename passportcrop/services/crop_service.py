# services/crop_service.py
import base64
import logging
from typing import List, Optional, Tuple

from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response
from PIL import Image
from pydantic import BaseModel

from passportcrop.config import OUTPUT_HEIGHT, OUTPUT_WIDTH
from passportcrop.cropper import (
    CropRegion,
    DetectedFace,
    ImageTransformer,
    PillowTransformer,
    calculate_passport_crop,
    decode_image,
    select_largest_face,
)
from passportcrop.detector import FaceDetector
from passportcrop.error_codes import NoFaceDetectedError

logger = logging.getLogger(__name__)

NO_FACE_MESSAGE = "No face detected. Please upload a clear, front-facing photo."


class CropResult(BaseModel):
    image: bytes
    region: CropRegion
    face: DetectedFace
    original_size: int


def plan_crop(faces: List[DetectedFace], image_width: int, image_height: int) -> Tuple[DetectedFace, CropRegion]:
    """Pick the principal face and compute its crop. Raises on an empty list."""
    if not faces:
        raise NoFaceDetectedError(NO_FACE_MESSAGE)

    face = select_largest_face(faces)
    region = calculate_passport_crop(face.box, image_width, image_height)
    logger.info(
        "Detected %d face(s); using score=%.3f region=%s",
        len(faces),
        face.score,
        region.as_pillow_box(),
    )
    return face, region


def crop_image(
    pil_img: Image.Image,
    detector: FaceDetector,
    transformer: Optional[ImageTransformer] = None,
    original_size: int = 0,
    output_size: Tuple[int, int] = (OUTPUT_WIDTH, OUTPUT_HEIGHT),
) -> CropResult:
    """Run detection, selection, geometry and encoding on a decoded image."""
    transformer = transformer or PillowTransformer()
    faces = detector.detect_faces(pil_img)
    face, region = plan_crop(faces, pil_img.width, pil_img.height)
    output = transformer.extract_and_resize(pil_img, region, *output_size)
    return CropResult(image=output, region=region, face=face, original_size=original_size)


def crop_passport_photo(
    file_bytes: bytes,
    detector: FaceDetector,
    transformer: Optional[ImageTransformer] = None,
    output_size: Tuple[int, int] = (OUTPUT_WIDTH, OUTPUT_HEIGHT),
) -> CropResult:
    """
    Takes uploaded bytes → decode → detect → select → crop → JPEG.
    """
    pil_img = decode_image(file_bytes)
    return crop_image(pil_img, detector, transformer, len(file_bytes), output_size)


async def crop_passport_photo_async(
    file_bytes: bytes,
    detector: FaceDetector,
    transformer: Optional[ImageTransformer] = None,
    output_size: Tuple[int, int] = (OUTPUT_WIDTH, OUTPUT_HEIGHT),
) -> CropResult:
    """Same pipeline as crop_passport_photo, with the slow steps off the event loop."""
    transformer = transformer or PillowTransformer()

    pil_img = await run_in_threadpool(decode_image, file_bytes)
    faces = await run_in_threadpool(detector.detect_faces, pil_img)
    face, region = plan_crop(faces, pil_img.width, pil_img.height)
    output = await run_in_threadpool(transformer.extract_and_resize, pil_img, region, *output_size)
    return CropResult(image=output, region=region, face=face, original_size=len(file_bytes))


def to_data_uri(jpeg_bytes: bytes) -> str:
    return "data:image/jpeg;base64," + base64.b64encode(jpeg_bytes).decode("ascii")


def format_crop_response(result: CropResult, as_base64: bool = False) -> Response:
    if as_base64:
        return JSONResponse(
            {
                "image": to_data_uri(result.image),
                "meta": {
                    "originalSize": result.original_size,
                    "faceConfidence": result.face.score,
                },
            }
        )
    return Response(content=result.image, media_type="image/jpeg")

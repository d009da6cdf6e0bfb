import io
import logging
import math
from typing import List, Optional, Protocol, Tuple

from PIL import Image, ImageOps
from pydantic import BaseModel

from passportcrop.config import JPEG_QUALITY

logger = logging.getLogger(__name__)

# ----------------------------
# Passport framing constants
# ----------------------------
FACE_HEIGHT_RATIO = 0.75  # face height / crop height
ASPECT_RATIO = 0.77  # width / height, ~3.5:4.5
HEADROOM_SHIFT = 0.1  # upward shift, in face heights


# ----------------------------
# Data model
# ----------------------------
class BoundingBox(BaseModel):
    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height

    @classmethod
    def from_corners(cls, x1: float, y1: float, x2: float, y2: float) -> "BoundingBox":
        """Build a box from [x1, y1, x2, y2] as returned by RetinaFace."""
        return cls(x=x1, y=y1, width=x2 - x1, height=y2 - y1)


class DetectedFace(BaseModel):
    box: BoundingBox
    score: float
    landmarks: Optional[List[Tuple[float, float]]] = None


class CropRegion(BaseModel):
    left: int
    top: int
    width: int
    height: int

    def as_pillow_box(self) -> Tuple[int, int, int, int]:
        """(left, top, right, bottom) tuple for Image.crop."""
        return (self.left, self.top, self.left + self.width, self.top + self.height)


# ----------------------------
# Face selection
# ----------------------------
def select_largest_face(faces: List[DetectedFace]) -> DetectedFace:
    """
    Pick the face with the largest box area.

    Callers must handle the empty case first. max() keeps the first
    maximal element, so ties go to the earliest face.
    """
    return max(faces, key=lambda face: face.box.area)


# ----------------------------
# Crop geometry
# ----------------------------
def calculate_passport_crop(box: BoundingBox, image_width: int, image_height: int) -> CropRegion:
    """
    Map a face box to a passport-style crop rectangle.

    The crop is sized so the face fills 75% of its height, with a fixed
    0.77 aspect ratio, centered on the face and shifted up by 10% of the
    face height. Clamping only translates the rectangle, one edge at a
    time in the order left, top, right, bottom; it never shrinks it.

    When the target rectangle is larger than the image the translation
    pushes it negative. The final max(0, ...) and min(image size, ...)
    are applied independently, so the result stays in bounds but loses
    both centering and aspect ratio.
    """
    center_x = box.x + box.width / 2
    center_y = box.y + box.height / 2

    target_height = box.height / FACE_HEIGHT_RATIO
    target_width = target_height * ASPECT_RATIO

    crop_x = center_x - target_width / 2
    crop_y = center_y - target_height / 2
    crop_y -= box.height * HEADROOM_SHIFT

    if crop_x < 0:
        crop_x = 0
    if crop_y < 0:
        crop_y = 0
    if crop_x + target_width > image_width:
        crop_x = image_width - target_width
    if crop_y + target_height > image_height:
        crop_y = image_height - target_height

    return CropRegion(
        left=max(0, math.floor(crop_x)),
        top=max(0, math.floor(crop_y)),
        width=min(image_width, math.floor(target_width)),
        height=min(image_height, math.floor(target_height)),
    )


# ----------------------------
# Image I/O
# ----------------------------
def decode_image(file_bytes: bytes) -> Image.Image:
    """Decode upload bytes into an upright RGB image."""
    pil_img = Image.open(io.BytesIO(file_bytes))
    pil_img = ImageOps.exif_transpose(pil_img)
    if pil_img.mode != "RGB":
        pil_img = pil_img.convert("RGB")
    return pil_img


class ImageTransformer(Protocol):
    def extract_and_resize(
        self, image: Image.Image, region: CropRegion, out_width: int, out_height: int
    ) -> bytes:
        ...


class PillowTransformer:
    """Crop, resize and JPEG-encode with Pillow."""

    def __init__(self, jpeg_quality: int = JPEG_QUALITY):
        self.jpeg_quality = jpeg_quality

    def extract_and_resize(
        self, image: Image.Image, region: CropRegion, out_width: int, out_height: int
    ) -> bytes:
        cropped = image.crop(region.as_pillow_box())
        resized = cropped.resize((out_width, out_height), Image.LANCZOS)
        if resized.mode != "RGB":
            resized = resized.convert("RGB")

        buffer = io.BytesIO()
        resized.save(buffer, format="JPEG", quality=self.jpeg_quality)
        return buffer.getvalue()

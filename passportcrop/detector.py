import logging
from pathlib import Path
from typing import List, Optional, Protocol
from urllib.parse import urlparse

import numpy as np
from PIL import Image

from passportcrop.config import (
    DETECTION_CONFIDENCE,
    MODEL_DEVICE,
    MODEL_MAX_SIZE,
    MODEL_NAME,
    NMS_THRESHOLD,
)
from passportcrop.cropper import BoundingBox, DetectedFace
from passportcrop.error_codes import DetectorNotReadyError, ModelLoadError

logger = logging.getLogger(__name__)


class FaceDetector(Protocol):
    def detect_faces(self, image: Image.Image) -> List[DetectedFace]:
        ...


class RetinaFaceDetector:
    """Keeps one RetinaFace model in memory; inference only, never mutated."""

    def __init__(self, model, confidence_threshold=DETECTION_CONFIDENCE, nms_threshold=NMS_THRESHOLD):
        self.model = model
        self.confidence_threshold = confidence_threshold
        self.nms_threshold = nms_threshold

    def detect_faces(self, image: Image.Image) -> List[DetectedFace]:
        import torch

        with torch.no_grad():
            annotations = self.model.predict_jsons(
                np.asarray(image),
                confidence_threshold=self.confidence_threshold,
                nms_threshold=self.nms_threshold,
            )
        return parse_annotations(annotations, self.confidence_threshold)


def parse_annotations(annotations, conf_threshold=DETECTION_CONFIDENCE) -> List[DetectedFace]:
    """
    Convert RetinaFace predict_jsons output into DetectedFace objects.

    RetinaFace returns a single placeholder entry with an empty bbox and
    score -1 when nothing is found; those are dropped along with any
    detection under the confidence threshold. Input order is preserved.
    """
    faces = []
    for ann in annotations:
        bbox = ann.get("bbox") or []
        score = ann.get("score", 0)
        if len(bbox) < 4 or score < conf_threshold:
            continue
        landmarks = [(float(pt[0]), float(pt[1])) for pt in ann.get("landmarks") or [] if len(pt) >= 2]
        faces.append(
            DetectedFace(
                box=BoundingBox.from_corners(*(float(v) for v in bbox[:4])),
                score=float(score),
                landmarks=landmarks or None,
            )
        )
    return faces


def expected_weights_file(model_name: str) -> str:
    """File name torch.hub caches the RetinaFace weights under."""
    from retinaface.pre_trained_models import models

    return Path(urlparse(models[model_name].url).path).name


def load_face_detector(
    model_dir: Path,
    model_name: str = MODEL_NAME,
    max_size: int = MODEL_MAX_SIZE,
    device: str = MODEL_DEVICE,
) -> RetinaFaceDetector:
    """
    Load RetinaFace weights from a local torch hub directory.

    The weights are expected under <model_dir>/checkpoints, the layout
    torch.hub uses. The exact file get_model would download must be
    present, so nothing is ever fetched over the network. Raises
    ModelLoadError with a diagnostic message otherwise.
    """
    model_dir = Path(model_dir)
    logger.info("Checking for models in: %s", model_dir)

    if not model_dir.is_dir():
        parent = model_dir.parent
        contents = sorted(p.name for p in parent.iterdir()) if parent.is_dir() else []
        logger.error("The models folder does not exist: %s", model_dir)
        logger.error("Contents of %s: %s", parent, contents)
        raise ModelLoadError(f"Missing models folder: {model_dir}")

    checkpoint_dir = model_dir / "checkpoints"
    files = sorted(p.name for p in checkpoint_dir.iterdir()) if checkpoint_dir.is_dir() else []
    if not files:
        logger.error("No model weights found in %s", checkpoint_dir)
        raise ModelLoadError(f"No model weights in {checkpoint_dir}")
    logger.info("Found these model files: %s", files)

    try:
        weights_file = expected_weights_file(model_name)
    except Exception as exc:
        logger.error("Cannot resolve weights for %s: %s", model_name, exc)
        raise ModelLoadError(f"Failed to load {model_name}: {exc}") from exc
    if weights_file not in files:
        logger.error("Expected %s in %s, found %s", weights_file, checkpoint_dir, files)
        raise ModelLoadError(f"Missing weights file {weights_file} in {checkpoint_dir}")

    try:
        import torch
        from retinaface.pre_trained_models import get_model

        torch.hub.set_dir(str(model_dir))
        model = get_model(model_name, max_size=max_size, device=device)
        model.eval()
    except Exception as exc:
        logger.error("Model loading failed: %s", exc)
        raise ModelLoadError(f"Failed to load {model_name}: {exc}") from exc

    logger.info("Model %s loaded on %s", model_name, device)
    return RetinaFaceDetector(model)


# ----------------------------
# Process-wide detector
# ----------------------------
_detector: Optional[FaceDetector] = None


def init_detector(detector: FaceDetector) -> None:
    global _detector
    if _detector is not None:
        raise RuntimeError("Face detector is already initialised")
    _detector = detector


def is_ready() -> bool:
    return _detector is not None


def get_detector() -> FaceDetector:
    if _detector is None:
        raise DetectorNotReadyError("Face detector is not loaded yet")
    return _detector


def reset_detector() -> None:
    global _detector
    _detector = None

# config.py

import os
from pathlib import Path

BASE_DIR = Path(__file__).parent
TEMPLATES_DIR = BASE_DIR / "templates"
STATIC_DIR = BASE_DIR / "static"

# Local torch hub directory; weights live under <MODEL_DIR>/checkpoints
MODEL_DIR = Path(os.getenv("MODEL_DIR", str(BASE_DIR.parent / "models")))
MODEL_NAME = os.getenv("MODEL_NAME", "resnet50_2020-07-20")
MODEL_MAX_SIZE = int(os.getenv("MODEL_MAX_SIZE", "2048"))
MODEL_DEVICE = os.getenv("MODEL_DEVICE", "cpu")

DETECTION_CONFIDENCE = float(os.getenv("DETECTION_CONFIDENCE", "0.5"))
NMS_THRESHOLD = float(os.getenv("NMS_THRESHOLD", "0.4"))

# 3.5 x 4.5 passport format
OUTPUT_WIDTH = int(os.getenv("OUTPUT_WIDTH", "350"))
OUTPUT_HEIGHT = int(os.getenv("OUTPUT_HEIGHT", "450"))
JPEG_QUALITY = int(os.getenv("JPEG_QUALITY", "95"))

HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8000"))

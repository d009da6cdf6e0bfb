# routers/crop_api.py
import logging
from typing import Optional, Union

from fastapi import APIRouter, File, Query, UploadFile
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile as StarletteUploadFile

from passportcrop.detector import get_detector, is_ready
from passportcrop.error_codes import (
    ERR_INTERNAL,
    ERR_NO_FILE,
    DetectorNotReadyError,
    NoFaceDetectedError,
)
from passportcrop.services.crop_service import crop_passport_photo_async, format_crop_response

router = APIRouter(prefix="/api", tags=["cropper"])

logger = logging.getLogger("uvicorn.error")


def no_file_response():
    return JSONResponse({"error": "No file uploaded", "error_code": ERR_NO_FILE}, status_code=400)


@router.post("/crop")
async def crop_endpoint(
    photo: Union[UploadFile, str, None] = File(None),
    format: Optional[str] = Query(None),
):
    # a plain text "photo" field counts as no upload
    if not isinstance(photo, StarletteUploadFile):
        return no_file_response()

    try:
        file_bytes = await photo.read()
        if not file_bytes:
            return no_file_response()

        detector = get_detector()
        result = await crop_passport_photo_async(file_bytes, detector)
        return format_crop_response(result, as_base64=(format == "base64"))

    except NoFaceDetectedError as e:
        logger.info("No face detected in %s", photo.filename)
        return JSONResponse({"error": str(e), "error_code": e.error_code}, status_code=422)

    except DetectorNotReadyError as e:
        logger.warning("Rejecting request: %s", e)
        return JSONResponse({"error": str(e), "error_code": e.error_code}, status_code=503)

    except Exception as e:
        logger.exception("Processing error for %s", photo.filename)
        return JSONResponse(
            {"error": "Server Error", "details": str(e), "error_code": ERR_INTERNAL},
            status_code=500,
        )


@router.get("/health")
async def health():
    return {"status": "ok", "detector_ready": is_ready()}

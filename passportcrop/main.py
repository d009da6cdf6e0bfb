# main.py

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
import uvicorn
import logging
from time import time

from passportcrop import __version__
from passportcrop.config import (
    HOST,
    MODEL_DIR,
    OUTPUT_HEIGHT,
    OUTPUT_WIDTH,
    PORT,
    STATIC_DIR,
    TEMPLATES_DIR,
)
from passportcrop.detector import init_detector, load_face_detector, reset_detector
from passportcrop.error_codes import ModelLoadError
from passportcrop.routers.crop_api import router as crop_router

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the face detector once before serving; exit if it cannot be loaded."""

    logger.info("Loading face detector...")
    try:
        detector = load_face_detector(MODEL_DIR)
    except ModelLoadError as exc:
        logger.error("Startup aborted: %s", exc)
        raise SystemExit(1) from exc

    init_detector(detector)
    logger.info("Face detector ready")
    yield
    reset_detector()


app = FastAPI(title="Passport Photo Cropper", version=__version__, lifespan=lifespan)

app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

app.include_router(crop_router)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start = time()
    response = await call_next(request)
    process_time = time() - start
    response.headers["X-Process-Time"] = f"{process_time:.3f}s"
    return response


@app.get("/", response_class=HTMLResponse)
async def index(request: Request):
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "title": "Passport Photo Cropper",
            "output_width": OUTPUT_WIDTH,
            "output_height": OUTPUT_HEIGHT,
        },
    )


def run():
    uvicorn.run("passportcrop.main:app", host=HOST, port=PORT)


if __name__ == "__main__":
    run()

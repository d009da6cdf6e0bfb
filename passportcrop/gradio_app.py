import io
import logging

import gradio as gr
from PIL import Image

from passportcrop.config import MODEL_DIR, OUTPUT_HEIGHT, OUTPUT_WIDTH
from passportcrop.detector import get_detector, init_detector, load_face_detector
from passportcrop.error_codes import DetectorNotReadyError, NoFaceDetectedError
from passportcrop.services.crop_service import crop_passport_photo

logger = logging.getLogger(__name__)

CUSTOM_CSS = """
body {
    background: radial-gradient(circle at 30% 20%, #0b2b45, #061a2b 60%, #04121e);
    font-family: 'Inter', sans-serif !important;
    color: #e9f3ff;
}
.panel {
    flex: 1;
    padding: 25px;
    border-radius: 15px;
    background: rgba(255,255,255,0.05);
    border: 1px solid rgba(255,255,255,0.1);
}
.panel-title {
    font-size: 1.4rem;
    font-weight: 500;
    letter-spacing: 1px;
    margin-bottom: 20px;
}
"""


def crop_photo(image_path):
    if not image_path:
        return None, "❌ No file uploaded."
    try:
        with open(image_path, "rb") as f:
            file_bytes = f.read()
        result = crop_passport_photo(file_bytes, get_detector())
    except NoFaceDetectedError as e:
        return None, f"❌ {e}"
    except DetectorNotReadyError as e:
        return None, f"❌ {e}"
    except Exception as e:
        logger.exception("Crop failed for %s", image_path)
        return None, f"❌ Crop failed: {e}"

    region = result.region
    msg = (
        f"✅ Face confidence {result.face.score:.1%}, "
        f"crop {region.width}x{region.height} at ({region.left}, {region.top})"
    )
    return Image.open(io.BytesIO(result.image)), msg


with gr.Blocks(css=CUSTOM_CSS, title="Passport Photo Cropper") as demo:

    with gr.Row():

        with gr.Column(elem_classes="panel"):
            gr.HTML("<div class='panel-title'>Upload</div>")
            input_image = gr.Image(type="filepath", label="Photo")
            crop_btn = gr.Button("Crop")

        with gr.Column(elem_classes="panel"):
            gr.HTML(f"<div class='panel-title'>Passport Photo ({OUTPUT_WIDTH}x{OUTPUT_HEIGHT})</div>")
            output_image = gr.Image(type="pil", label="Result", interactive=False)
            status = gr.Textbox(label="Status", interactive=False)

    crop_btn.click(crop_photo, [input_image], [output_image, status])


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_detector(load_face_detector(MODEL_DIR))
    demo.launch(server_name="0.0.0.0", server_port=7860)

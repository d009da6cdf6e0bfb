import argparse
import concurrent.futures
import logging
import multiprocessing
import os
import queue
import sys
import threading

from passportcrop.config import MODEL_DIR, OUTPUT_HEIGHT, OUTPUT_WIDTH
from passportcrop.cropper import PillowTransformer, decode_image
from passportcrop.detector import load_face_detector
from passportcrop.error_codes import ModelLoadError, NoFaceDetectedError
from passportcrop.services.crop_service import plan_crop

logger = logging.getLogger(__name__)

VALID_EXTS = (".jpg", ".jpeg", ".png", ".webp", ".bmp", ".tiff")


# ----------------------------
# Dedicated detection worker
# ----------------------------
class FaceDetectionWorker:
    """Owns the detector, processes detection requests sequentially."""
    def __init__(self, detector):
        self.detector = detector
        self.task_q = queue.Queue()
        self.result_q = queue.Queue()
        self.cancelled = threading.Event()
        self.thread = threading.Thread(target=self._worker, daemon=True)
        self.thread.start()

    def _worker(self):
        while True:
            item = self.task_q.get()
            if item is None:
                break
            filename, input_path = item
            if self.cancelled.is_set():
                self.task_q.task_done()
                continue
            try:
                with open(input_path, "rb") as f:
                    pil_img = decode_image(f.read())
                faces = self.detector.detect_faces(pil_img)
                self.result_q.put((filename, (pil_img, faces), None))
            except Exception as e:
                self.result_q.put((filename, None, e))
            finally:
                self.task_q.task_done()

    def submit(self, filename, input_path):
        self.task_q.put((filename, input_path))

    def get_result(self):
        return self.result_q.get()

    def cancel(self):
        """Drop every queued detection; the one in flight still finishes."""
        self.cancelled.set()
        while True:
            try:
                self.task_q.get_nowait()
            except queue.Empty:
                break
            self.task_q.task_done()

    def shutdown(self):
        self.task_q.put(None)
        self.thread.join()


# ----------------------------
# Cropping logic
# ----------------------------
def output_name(filename):
    base_name, _ = os.path.splitext(os.path.basename(filename))
    return f"{base_name}_passport.jpg"


def process_image(filename, detection_result, output_folder, transformer,
                  output_size=(OUTPUT_WIDTH, OUTPUT_HEIGHT)):
    """Select, crop, encode and save based on a detection result."""
    pil_img, faces = detection_result
    output_path = os.path.join(output_folder, output_name(filename))

    try:
        _, region = plan_crop(faces, pil_img.width, pil_img.height)
        jpeg = transformer.extract_and_resize(pil_img, region, *output_size)
        with open(output_path, "wb") as f:
            f.write(jpeg)
    except NoFaceDetectedError:
        logger.info("%s: No face detected. Skipping...", filename)
        return 0
    except Exception:
        logger.exception("%s: error during crop/save", filename)
        return 0
    return 1


# ----------------------------
# Main threaded controller
# ----------------------------
def process_images_threaded(
    input_folder,
    output_folder,
    detector,
    transformer=None,
    progress_callback=None,
    cancel_func=None,
    output_size=(OUTPUT_WIDTH, OUTPUT_HEIGHT),
):
    os.makedirs(output_folder, exist_ok=True)
    transformer = transformer or PillowTransformer()
    filenames = sorted(f for f in os.listdir(input_folder) if f.lower().endswith(VALID_EXTS))
    total = len(filenames)
    if not total:
        logger.warning("No valid images found in %s", input_folder)
        return 0, 0

    worker = FaceDetectionWorker(detector)
    for fn in filenames:
        worker.submit(fn, os.path.join(input_folder, fn))

    processed = 0
    max_workers = min(4, multiprocessing.cpu_count())
    with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = []

        for detected in range(1, total + 1):
            filename, result, err = worker.get_result()
            if progress_callback:
                progress_callback(detected, total, "Detected")
            if err:
                logger.error("%s: detection error %s", filename, err)
                continue
            if cancel_func and cancel_func():
                logger.info("Cancelled after %d/%d detections", detected, total)
                worker.cancel()
                break

            fut = executor.submit(
                process_image,
                filename,
                result,
                output_folder,
                transformer,
                output_size,
            )
            futures.append(fut)

        for fut in concurrent.futures.as_completed(futures):
            processed += fut.result()
            if progress_callback:
                progress_callback(processed, total, "Processed")

    worker.shutdown()
    logger.info("Done: %d/%d images processed.", processed, total)
    return processed, total


def main(argv=None):
    parser = argparse.ArgumentParser(description="Crop a folder of photos to passport format")
    parser.add_argument("input_folder")
    parser.add_argument("output_folder")
    parser.add_argument("--model-dir", default=str(MODEL_DIR), help="Local RetinaFace weights directory")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    try:
        detector = load_face_detector(args.model_dir)
    except ModelLoadError as e:
        logger.error("%s", e)
        return 1

    processed, total = process_images_threaded(args.input_folder, args.output_folder, detector)
    print(f"Processed {processed}/{total} images.")
    return 0 if processed else 1


if __name__ == "__main__":
    sys.exit(main())

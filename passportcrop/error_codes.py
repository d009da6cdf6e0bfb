# error_codes.py

ERR_NO_FILE = 1
ERR_NO_FACE = 2
ERR_NOT_READY = 3
ERR_INTERNAL = 500


class PassportCropError(Exception):
    """Base error for the cropping pipeline."""

    error_code = ERR_INTERNAL


class NoFaceDetectedError(PassportCropError):
    """The detector ran fine but found no face."""

    error_code = ERR_NO_FACE


class DetectorNotReadyError(PassportCropError):
    error_code = ERR_NOT_READY


class ModelLoadError(PassportCropError):
    """Detector weights are missing or unreadable. Fatal at startup."""

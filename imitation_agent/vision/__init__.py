from .scaling import ScaleResult, compute_scale, fit_to_canvas, to_tensor
from .capture import ScreenCapture, FileCapture, load_image

__all__ = [
    "ScaleResult",
    "compute_scale",
    "fit_to_canvas",
    "to_tensor",
    "ScreenCapture",
    "FileCapture",
    "load_image",
]

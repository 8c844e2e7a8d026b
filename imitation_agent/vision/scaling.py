"""
Letterbox scaling for classifier input.

Captures come in whatever size the game window happens to be. Every frame is
scaled into a fixed canvas (224x224 by default) before it is stored or fed to
the classifier, so the geometry here decides the pixel alignment the model
learns from. Keep it bit-exact.
"""

import math
from dataclasses import dataclass

import cv2
import numpy as np
import torch


@dataclass(frozen=True)
class ScaleResult:
    """Where a scaled source image lands inside the target canvas."""
    width: int
    height: int
    offset_left: int
    offset_top: int
    scale_to_width: bool = True

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


EMPTY_SCALE = ScaleResult(width=0, height=0, offset_left=0, offset_top=0, scale_to_width=True)


def compute_scale(
    src_width: int,
    src_height: int,
    target_width: int,
    target_height: int,
    letterbox: bool = False,
) -> ScaleResult:
    """
    Compute the scaled size and centring offsets of a source image.

    Args:
        src_width, src_height: Size of the capture
        target_width, target_height: Size of the classifier canvas
        letterbox: Note the flag reads backwards. False = fit inside the
                   canvas with black bars (a true letterbox). True = cover/crop:
                   the image fills the canvas and overflows one axis
                   (negative offset), the overflow is cropped.

    Returns:
        ScaleResult. Non-positive sizes give an empty result.
    """
    if src_width <= 0 or src_height <= 0 or target_width <= 0 or target_height <= 0:
        return EMPTY_SCALE

    # Scale to the target width
    width_1 = target_width
    height_1 = (src_height * target_width) / src_width

    # Scale to the target height
    width_2 = (src_width * target_height) / src_height
    height_2 = target_height

    scale_on_width = width_2 > target_width
    if scale_on_width:
        scale_on_width = not letterbox
    else:
        scale_on_width = letterbox

    if scale_on_width:
        width, height = math.floor(width_1), math.floor(height_1)
    else:
        width, height = math.floor(width_2), math.floor(height_2)

    return ScaleResult(
        width=width,
        height=height,
        offset_left=(target_width - width) // 2,
        offset_top=(target_height - height) // 2,
        scale_to_width=scale_on_width,
    )


def _as_bgr(frame: np.ndarray) -> np.ndarray:
    if frame.ndim == 2:
        return cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
    # mss hands back BGRA
    return frame[:, :, :3]


def fit_to_canvas(
    frame: np.ndarray,
    target_width: int,
    target_height: int,
    letterbox: bool = False,
) -> np.ndarray:
    """
    Resize a frame and paste it centred onto a black canvas.

    Anything that overflows the canvas (cover mode) is cropped.

    Returns:
        uint8 array of shape (target_height, target_width, 3)
    """
    canvas = np.zeros((target_height, target_width, 3), dtype=np.uint8)
    if frame is None or frame.size == 0:
        return canvas

    frame = _as_bgr(frame)
    src_height, src_width = frame.shape[:2]
    scale = compute_scale(src_width, src_height, target_width, target_height, letterbox)
    if scale.is_empty:
        return canvas

    shrinking = scale.width < src_width or scale.height < src_height
    interpolation = cv2.INTER_AREA if shrinking else cv2.INTER_LINEAR
    resized = cv2.resize(
        np.ascontiguousarray(frame),
        (scale.width, scale.height),
        interpolation=interpolation,
    )

    # Clip the pasted region to the canvas
    x0 = max(scale.offset_left, 0)
    y0 = max(scale.offset_top, 0)
    x1 = min(scale.offset_left + scale.width, target_width)
    y1 = min(scale.offset_top + scale.height, target_height)
    canvas[y0:y1, x0:x1] = resized[
        y0 - scale.offset_top:y1 - scale.offset_top,
        x0 - scale.offset_left:x1 - scale.offset_left,
    ]
    return canvas


def to_tensor(canvas: np.ndarray) -> torch.Tensor:
    """
    Convert a BGR uint8 canvas to a normalised model input.

    Returns:
        float32 tensor of shape (1, 3, H, W) in [-1, 1], RGB channel order
    """
    rgb = np.ascontiguousarray(canvas[:, :, ::-1])
    x = torch.from_numpy(rgb).to(torch.float32)
    x = (x - 127.5) / 127.5
    return x.permute(2, 0, 1).unsqueeze(0)

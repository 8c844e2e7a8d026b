"""
OpenCV window showing what the classifier sees.

Displays the normalised canvas, upscaled, with the predicted direction
probabilities drawn on top. Toggle it with the 'm' hotkey.
"""

import cv2
import numpy as np

from ..control.directions import DIRECTION_ORDER

# Arrow offsets from the centre, (dx, dy) per direction
ARROWS = {
    'up': (0, -1),
    'right': (1, 0),
    'down': (0, 1),
    'left': (-1, 0),
}


def draw_prediction(canvas: np.ndarray, output=None, scale: int = 2) -> np.ndarray:
    """Upscale a canvas and overlay one arrow per direction."""
    h, w = canvas.shape[:2]
    frame = cv2.resize(canvas, (w * scale, h * scale), interpolation=cv2.INTER_NEAREST)
    if output is None:
        return frame

    probs = np.ravel(np.asarray(output, dtype=np.float32))
    cx, cy = frame.shape[1] // 2, frame.shape[0] // 2
    length = min(cx, cy) // 2

    for i, name in enumerate(DIRECTION_ORDER):
        p = float(probs[i])
        dx, dy = ARROWS[name]
        tip = (cx + dx * length, cy + dy * length)
        color = (0, int(255 * p), int(255 * (1.0 - p)))
        cv2.arrowedLine(frame, (cx, cy), tip, color, max(1, int(6 * p)), tipLength=0.3)
        cv2.putText(
            frame,
            f"{name}: {p:.2f}",
            (10, 20 + 20 * i),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.5,
            (0, 255, 0),
            1,
        )
    return frame


class PreviewWindow:
    """Display sink for the sampler and the predictor."""

    def __init__(self, window_name: str = "Machine view - press M to toggle", scale: int = 2, enabled: bool = False):
        self.window_name = window_name
        self.scale = scale
        self.enabled = enabled
        self._open = False

    def toggle(self) -> bool:
        self.enabled = not self.enabled
        if not self.enabled:
            self.close()
        return self.enabled

    def show(self, canvas: np.ndarray, output=None):
        if not self.enabled:
            return
        if not self._open:
            cv2.namedWindow(self.window_name, cv2.WINDOW_NORMAL)
            self._open = True
        cv2.imshow(self.window_name, draw_prediction(canvas, output, self.scale))
        cv2.waitKey(1)

    def close(self):
        if self._open:
            cv2.destroyWindow(self.window_name)
            self._open = False

"""
Screen capture module using MSS for fast frame grabbing.

Both capture sources expose the same coroutine, ``request_capture()``, which
returns a BGR numpy frame or raises CaptureUnavailable.
"""

import logging
from pathlib import Path

import mss
import mss.exception
import numpy as np
from PIL import Image

from ..exceptions import CaptureExhausted, CaptureUnavailable

logger = logging.getLogger(__name__)


class ScreenCapture:
    """
    Grab frames of the game window from the screen.

    Uses MSS which is significantly faster than PIL or pyautogui
    for continuous frame capture.
    """

    def __init__(self, monitor: int = 1, region: dict | None = None):
        """
        Args:
            monitor: Monitor index (1 = primary)
            region: Optional dict with top, left, width, height to capture subset
        """
        self.monitor = monitor
        self.region = region
        self._sct = None

    @property
    def sct(self):
        # Opened on first use so constructing a capture never needs a display
        if self._sct is None:
            self._sct = mss.mss()
        return self._sct

    def get_monitor_info(self) -> dict:
        """Get dimensions of the target monitor."""
        return self.sct.monitors[self.monitor]

    def capture(self) -> np.ndarray:
        """
        Capture a single frame.

        Returns:
            numpy array in BGR format (OpenCV compatible)
        """
        try:
            target = self.region if self.region else self.sct.monitors[self.monitor]
            screenshot = self.sct.grab(target)
        except (mss.exception.ScreenShotError, IndexError) as e:
            raise CaptureUnavailable(f"Screen grab failed: {e}") from e

        # BGRA -> BGR
        frame = np.array(screenshot)[:, :, :3]
        if frame.size == 0:
            raise CaptureUnavailable("Screen grab returned an empty frame")
        return frame

    async def request_capture(self) -> np.ndarray:
        return self.capture()

    def close(self):
        if self._sct is not None:
            self._sct.close()
            self._sct = None


def load_image(path: str | Path) -> np.ndarray:
    """
    Load an image file as a BGR frame.

    Transparent images are composited onto white first.
    """
    img = Image.open(path)

    if img.mode == 'RGBA':
        background = Image.new('RGB', img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[3])  # 3 is the alpha channel
        img = background
    else:
        img = img.convert("RGB")

    return np.array(img, dtype=np.uint8)[:, :, ::-1].copy()


class FileCapture:
    """
    Replay saved frames from a directory as if they were live captures.

    Frames are served in filename order. Once exhausted, every request raises
    CaptureExhausted, which ends sampling.
    """

    def __init__(self, image_dir: str | Path, patterns: tuple[str, ...] = ("*.png", "*.jpg")):
        image_dir = Path(image_dir)
        paths = []
        for pattern in patterns:
            paths.extend(image_dir.glob(pattern))
        self.paths = sorted(paths)
        self._next = 0
        logger.info("Loaded %d frames from %s", len(self.paths), image_dir)

    def __len__(self) -> int:
        return len(self.paths)

    async def request_capture(self) -> np.ndarray:
        if self._next >= len(self.paths):
            raise CaptureExhausted("No more frames to replay")
        path = self.paths[self._next]
        self._next += 1
        return load_image(path)

"""
Predict a direction from a fresh capture.
"""

import asyncio
import contextlib
import logging

import numpy as np

from ..control.directions import DirectionState, binarize, decode
from ..train.config import SessionConfig
from ..train.trainer import Classifier, resolve
from ..vision.scaling import fit_to_canvas

logger = logging.getLogger(__name__)


class DirectionPredictor:
    """
    Run the classifier forward on one capture.

    Captures are always scaled without letterboxing for inference. Neither
    the classifier nor any replay data is modified.
    """

    def __init__(
        self,
        classifier: Classifier,
        config: SessionConfig,
        lock: asyncio.Lock | None = None,
        display=None,
    ):
        self.classifier = classifier
        self.config = config
        self.lock = lock
        self.display = display

    async def predict(self, capture: np.ndarray) -> np.ndarray:
        """
        Returns:
            Raw classifier output, one value per direction in DIRECTION_ORDER
        """
        canvas = fit_to_canvas(capture, self.config.target_width, self.config.target_height, letterbox=False)

        guard = self.lock if self.lock is not None else contextlib.nullcontext()
        async with guard:
            output = await resolve(self.classifier.forward(canvas))
        output = np.asarray(output)

        logger.info("Prediction: %s", np.array2string(output, precision=3))
        if self.display is not None:
            self.display.show(canvas, output)
        return output

    async def predict_direction(self, capture: np.ndarray, threshold: float | None = None) -> DirectionState:
        """Predicted direction keys, thresholding each output independently."""
        threshold = self.config.prediction_threshold if threshold is None else threshold
        output = await self.predict(capture)
        return decode(binarize(np.ravel(output), threshold))

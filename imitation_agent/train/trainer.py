"""
Sequential training over the replay buffer.

Each step fits the classifier on exactly one replay entry, in buffer order.
Steps are awaited one after another; the classifier is shared with inference
and interleaved updates would corrupt it.
"""

import asyncio
import contextlib
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Protocol

import numpy as np

from ..exceptions import BufferUnderrun
from ..vision.scaling import fit_to_canvas
from .config import SessionConfig
from .replay import ReplayBuffer

logger = logging.getLogger(__name__)


class Classifier(Protocol):
    """fit/forward capability the pipeline trains and queries. Either may be async."""

    def fit(self, image: np.ndarray, label, epochs: int = 1, batch_size: int = 1) -> Any: ...

    def forward(self, image: np.ndarray) -> Any: ...


@dataclass
class StepResult:
    step: int
    loss: float
    accuracy: float


@dataclass
class EvalResult:
    count: int
    accuracy: float


async def resolve(result):
    """Await the result of a classifier call if it is awaitable."""
    if inspect.isawaitable(result):
        return await result
    return result


def metric(result, name: str) -> float:
    """Read loss/accuracy from a FitResult-like object or a dict."""
    if isinstance(result, dict):
        return float(result[name])
    return float(getattr(result, name))


class TrainingLoop:
    """Drive classifier.fit() over a ReplayBuffer, one entry per step."""

    def __init__(
        self,
        classifier: Classifier,
        buffer: ReplayBuffer,
        config: SessionConfig,
        lock: asyncio.Lock | None = None,
        on_step: Callable[[StepResult], None] | None = None,
    ):
        """
        Args:
            classifier: Shared classifier
            buffer: Replay buffer to read from
            config: Target size and fit() settings
            lock: Lock shared with inference around the classifier
            on_step: Called with each StepResult after the step completes
        """
        self.classifier = classifier
        self.buffer = buffer
        self.config = config
        self.lock = lock
        self.on_step = on_step

    def _guard(self):
        return self.lock if self.lock is not None else contextlib.nullcontext()

    def _prepare(self, image: np.ndarray) -> np.ndarray:
        # Entries from the sampler are already on the target canvas
        expected = (self.config.target_height, self.config.target_width, 3)
        if image.shape == expected:
            return image
        return fit_to_canvas(image, self.config.target_width, self.config.target_height,
                             letterbox=self.config.letterbox)

    async def train(self, iterations: int, batch_size: int | None = None) -> list[StepResult]:
        """
        Fit once on each of the first `iterations` entries, in order.

        Raises:
            BufferUnderrun: iterations exceeds the buffer length. Raised
                before any fit() call.
            Exception: whatever the classifier raises, unmodified. The
                remaining steps are abandoned.
        """
        available = len(self.buffer)
        if iterations > available:
            raise BufferUnderrun(iterations, available)

        batch_size = self.config.batch_size if batch_size is None else batch_size
        fit_kwargs = self.config.to_fit_kwargs()
        fit_kwargs["batch_size"] = batch_size

        logger.info("Training on %d of %d replay entries (batch_size=%d)", iterations, available, batch_size)

        results = []
        for i in range(iterations):
            entry = self.buffer[i]
            image = self._prepare(entry.image)
            try:
                async with self._guard():
                    result = await resolve(self.classifier.fit(image, entry.label, **fit_kwargs))
            except Exception:
                logger.error("Training step %d/%d failed, aborting", i + 1, iterations)
                raise

            step = StepResult(step=i, loss=metric(result, "loss"), accuracy=metric(result, "accuracy"))
            results.append(step)
            logger.info("step %d/%d | loss %.4f | acc %.4f", i + 1, iterations, step.loss, step.accuracy)
            if self.on_step is not None:
                self.on_step(step)

            # Let sampling, hotkeys and the preview run between steps
            await asyncio.sleep(0)

        return results

    async def evaluate(self, start: int = 0, count: int | None = None) -> EvalResult:
        """
        Forward-only accuracy over a slice of the buffer.

        Accuracy is argmax agreement between the output and the label.
        """
        end = len(self.buffer) if count is None else start + count
        if start < 0 or end > len(self.buffer):
            raise BufferUnderrun(end, len(self.buffer))

        correct = 0
        for i in range(start, end):
            entry = self.buffer[i]
            image = self._prepare(entry.image)
            async with self._guard():
                output = await resolve(self.classifier.forward(image))
            if int(np.argmax(output)) == int(np.argmax(entry.label)):
                correct += 1

        n = end - start
        accuracy = correct / n if n else 0.0
        logger.info("Evaluated %d entries: acc %.4f", n, accuracy)
        return EvalResult(count=n, accuracy=accuracy)

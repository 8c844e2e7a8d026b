"""
One imitation session: capture while the operator plays, then train, then predict.

Owns the replay buffer and the lock around the shared classifier. Sampling
and training are phased: a train request waits for sampling to finish.
"""

import asyncio
import logging
from pathlib import Path

import numpy as np

from ..control.directions import DirectionState
from ..train.config import SessionConfig
from ..train.replay import CaptureSource, ReplayBuffer, ReplaySampler
from ..train.trainer import Classifier, EvalResult, StepResult, TrainingLoop
from .inference import DirectionPredictor

logger = logging.getLogger(__name__)


class ImitationSession:
    """
    Wire capture, replay, training and inference together.

    Usage:
        session = ImitationSession(config, ScreenCapture(), state, TorchClassifier())
        session.start_sampling()
        await session.train()
        output = await session.evaluate()
    """

    COMMANDS = ("train", "evaluate", "preview", "save", "stop")

    def __init__(
        self,
        config: SessionConfig,
        capture_source: CaptureSource,
        state: DirectionState,
        classifier: Classifier,
        display=None,
        buffer: ReplayBuffer | None = None,
        replay_path: str | Path | None = None,
        checkpoint_path: str | Path | None = None,
    ):
        self.config = config
        self.capture_source = capture_source
        self.state = state
        self.classifier = classifier
        self.display = display
        self.replay_path = Path(replay_path) if replay_path else None
        self.checkpoint_path = Path(checkpoint_path) if checkpoint_path else None

        self.buffer = buffer if buffer is not None else ReplayBuffer(max_size=config.max_buffer_size)
        self.lock = asyncio.Lock()
        self.sampler = ReplaySampler(capture_source, state, self.buffer, config, display=display)
        self.trainer = TrainingLoop(classifier, self.buffer, config, lock=self.lock)
        self.predictor = DirectionPredictor(classifier, config, lock=self.lock, display=display)

        self.stopped = asyncio.Event()
        self._training = False
        self._pending: set[asyncio.Task] = set()

    def start_sampling(self, interval: float | None = None, max_samples: int | None = None) -> asyncio.Task:
        return self.sampler.start_sampling(interval, max_samples)

    def stop_sampling(self):
        self.sampler.stop()

    async def train(self, iterations: int | None = None) -> list[StepResult]:
        """
        Train on the replay buffer once sampling is done.

        Only one training run may be in flight; the flag is taken before
        waiting on the sampler so a second request cannot slip in.

        Args:
            iterations: Steps to run. Defaults to config.train_iterations,
                        or the whole buffer when that is None.

        Raises:
            RuntimeError: A training run is already in progress.
        """
        if self._training:
            raise RuntimeError("Training already in progress")
        self._training = True
        try:
            if self.sampler.running:
                logger.info("Waiting for sampling to finish before training...")
                await self.sampler.wait()

            if iterations is None:
                iterations = self.config.train_iterations
            if iterations is None:
                iterations = len(self.buffer)

            return await self.trainer.train(iterations, self.config.batch_size)
        finally:
            self._training = False

    async def evaluate(self, capture: np.ndarray | None = None) -> np.ndarray:
        """Predict from the given capture, or grab a fresh one."""
        if capture is None:
            capture = await self.capture_source.request_capture()
        return await self.predictor.predict(capture)

    async def score_holdout(self) -> EvalResult:
        """Accuracy over the last num_test_examples replay entries."""
        count = min(self.config.num_test_examples, len(self.buffer))
        return await self.trainer.evaluate(start=len(self.buffer) - count, count=count)

    def save(self):
        if self.replay_path is not None:
            self.buffer.save(self.replay_path)
        if self.checkpoint_path is not None and hasattr(self.classifier, "save"):
            self.classifier.save(self.checkpoint_path)

    def stop(self):
        self.sampler.stop()
        self.stopped.set()

    async def run_command(self, name: str):
        """Run one hotkey command to completion."""
        if name == "train":
            if self._training:
                logger.warning("Training already in progress")
                return
            await self.train()
            if len(self.buffer):
                await self.score_holdout()
        elif name == "evaluate":
            await self.evaluate()
        elif name == "preview":
            if self.display is not None and hasattr(self.display, "toggle"):
                enabled = self.display.toggle()
                logger.info("Preview %s", "on" if enabled else "off")
        elif name == "save":
            self.save()
        elif name == "stop":
            self.stop()
        else:
            raise ValueError(f"Unknown command: {name!r}. Expected one of {self.COMMANDS}")

    def handle_command(self, name: str) -> asyncio.Task:
        """
        Schedule a command from a hotkey callback.

        Errors are logged rather than lost in an unobserved task.
        """
        task = asyncio.get_running_loop().create_task(self.run_command(name), name=f"command-{name}")
        self._pending.add(task)
        task.add_done_callback(self._command_done)
        return task

    def _command_done(self, task: asyncio.Task):
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Command %s failed: %s", task.get_name(), exc, exc_info=exc)

    async def run_until_stopped(self):
        """Sample once, then keep serving hotkey commands until stop()."""
        self.start_sampling()
        await self.stopped.wait()
        await self.sampler.wait()
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

"""
Shared pytest fixtures for the imitation agent test suite.

Fixtures:
    small_config: SessionConfig with a 32x32 canvas and no sampling delay
    frame_factory: Builds BGR frames of a given size and fill value
    fake_capture: Scripted capture source (frames or CaptureUnavailable)
    fake_classifier: Records fit/forward calls without any torch
    replay_buffer: Buffer pre-filled with three labelled canvases
"""

import asyncio
import logging

import numpy as np
import pytest

from imitation_agent.control.directions import DirectionState
from imitation_agent.exceptions import CaptureUnavailable
from imitation_agent.train.config import SessionConfig
from imitation_agent.train.model import FitResult
from imitation_agent.train.replay import ReplayBuffer

logging.getLogger('PIL').setLevel(logging.WARNING)


class FakeCapture:
    """
    Capture source that plays back a script.

    Each script item is either a frame (returned) or None (raises
    CaptureUnavailable). on_capture(i) runs before item i is served, which
    lets tests change the held keys between ticks.
    """

    def __init__(self, script, on_capture=None):
        self.script = list(script)
        self.on_capture = on_capture
        self.calls = 0

    async def request_capture(self):
        i = self.calls
        self.calls += 1
        if self.on_capture is not None:
            self.on_capture(i)
        if i >= len(self.script) or self.script[i] is None:
            raise CaptureUnavailable(f"frame {i} not ready")
        return self.script[i]


class FakeClassifier:
    """
    Classifier double.

    fit() records (image, label, kwargs) and yields to the loop so that any
    overlap between steps would show up in max_in_flight.
    """

    def __init__(self, output=(0.1, 0.2, 0.3, 0.4), fail_at=None):
        self.output = np.array(output, dtype=np.float32)
        self.fail_at = fail_at
        self.fit_calls = []
        self.forward_calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fit(self, image, label, epochs=1, batch_size=1):
        step = len(self.fit_calls)
        self.fit_calls.append((image, tuple(label), {"epochs": epochs, "batch_size": batch_size}))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if self.fail_at is not None and step == self.fail_at:
                raise RuntimeError(f"fit exploded at step {step}")
            return FitResult(loss=1.0 / (step + 1), accuracy=0.5)
        finally:
            self.in_flight -= 1

    def forward(self, image):
        self.forward_calls.append(image)
        return self.output.copy()


@pytest.fixture
def small_config() -> SessionConfig:
    return SessionConfig(
        target_width=32,
        target_height=32,
        sample_interval=0.0,
        max_samples=5,
        batch_size=2,
        num_test_examples=2,
    )


@pytest.fixture
def frame_factory():
    def make(width=64, height=48, value=128):
        return np.full((height, width, 3), value, dtype=np.uint8)
    return make


@pytest.fixture
def direction_state() -> DirectionState:
    return DirectionState()


@pytest.fixture
def fake_capture(frame_factory):
    def make(script=None, on_capture=None):
        if script is None:
            script = [frame_factory(value=v) for v in range(10, 200, 10)]
        return FakeCapture(script, on_capture=on_capture)
    return make


@pytest.fixture
def fake_classifier():
    def make(**kwargs):
        return FakeClassifier(**kwargs)
    return make


@pytest.fixture
def replay_buffer(small_config) -> ReplayBuffer:
    buffer = ReplayBuffer()
    labels = [(1, 0, 0, 0), (0, 1, 0, 0), (1, 0, 1, 0)]
    for i, label in enumerate(labels):
        canvas = np.full((small_config.target_height, small_config.target_width, 3), i * 50, dtype=np.uint8)
        buffer.append(canvas, label)
    return buffer

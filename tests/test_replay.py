"""Tests for the replay buffer and the sampling loop."""

import asyncio
import json

import numpy as np
import pytest

from imitation_agent.control.directions import DirectionState
from imitation_agent.exceptions import ReplayBufferFull
from imitation_agent.train.config import SessionConfig
from imitation_agent.train.replay import ReplayBuffer, ReplayEntry, ReplaySampler


class TestReplayEntry:
    def test_image_is_copied_and_read_only(self):
        source = np.zeros((4, 4, 3), dtype=np.uint8)
        entry = ReplayEntry(image=source, label=(1, 0, 0, 0))

        source[:] = 255
        assert entry.image.max() == 0
        with pytest.raises(ValueError):
            entry.image[0, 0, 0] = 1

    def test_fields_cannot_be_reassigned(self):
        entry = ReplayEntry(image=np.zeros((2, 2, 3)), label=(0, 0, 0, 1))
        with pytest.raises(AttributeError):
            entry.label = (1, 1, 1, 1)

    def test_invalid_label_rejected(self):
        with pytest.raises(ValueError):
            ReplayEntry(image=np.zeros((2, 2, 3)), label=(1, 0))


class TestReplayBuffer:
    def test_append_keeps_insertion_order(self):
        buffer = ReplayBuffer()
        for i in range(5):
            buffer.append(np.full((2, 2, 3), i, dtype=np.uint8), (i % 2, 0, 0, 0))

        assert len(buffer) == 5
        assert [int(e.image[0, 0, 0]) for e in buffer] == [0, 1, 2, 3, 4]
        assert [e.index for e in buffer.entries] == [0, 1, 2, 3, 4]

    def test_bounded_buffer_refuses_extra_entries(self):
        buffer = ReplayBuffer(max_size=2)
        buffer.append(np.zeros((2, 2, 3)), (1, 0, 0, 0))
        buffer.append(np.zeros((2, 2, 3)), (0, 1, 0, 0))
        assert buffer.full

        with pytest.raises(ReplayBufferFull):
            buffer.append(np.zeros((2, 2, 3)), (0, 0, 1, 0))
        assert len(buffer) == 2
        assert buffer[0].label == (1, 0, 0, 0)

    def test_label_counts(self, replay_buffer):
        assert replay_buffer.label_counts() == {
            (1, 0, 0, 0): 1,
            (0, 1, 0, 0): 1,
            (1, 0, 1, 0): 1,
        }

    def test_save_and_load(self, replay_buffer, tmp_path):
        path = replay_buffer.save(tmp_path / "replay" / "session.npz")
        loaded = ReplayBuffer.load(path)

        assert len(loaded) == len(replay_buffer)
        for original, restored in zip(replay_buffer, loaded):
            assert restored.label == original.label
            np.testing.assert_array_equal(restored.image, original.image)

    def test_save_empty_buffer(self, tmp_path):
        path = ReplayBuffer().save(tmp_path / "empty.npz")
        assert len(ReplayBuffer.load(path)) == 0

    def test_export_frames(self, replay_buffer, tmp_path):
        labels_path = replay_buffer.export_frames(tmp_path / "frames")

        index = json.loads(labels_path.read_text())
        assert [item["label"] for item in index] == [[1, 0, 0, 0], [0, 1, 0, 0], [1, 0, 1, 0]]
        assert (tmp_path / "frames" / "frame_00002.png").exists()


class TestReplaySampler:
    @pytest.mark.asyncio
    async def test_samples_in_capture_order_with_live_labels(self, small_config, fake_capture):
        state = DirectionState()
        held = ["up", "right", "down", "left", "up"]

        def press(i):
            state.clear()
            state.set(held[i], True)

        buffer = ReplayBuffer()
        sampler = ReplaySampler(fake_capture(on_capture=press), state, buffer, small_config)
        await sampler.start_sampling(interval=0, max_samples=5)

        assert len(buffer) == 5
        assert [e.label for e in buffer] == [
            (1, 0, 0, 0),
            (0, 1, 0, 0),
            (0, 0, 1, 0),
            (0, 0, 0, 1),
            (1, 0, 0, 0),
        ]
        # Frames were filled with 10, 20, 30... so order is visible in the pixels
        assert [int(e.image[16, 16, 0]) for e in buffer] == [10, 20, 30, 40, 50]
        assert all(e.image.shape == (32, 32, 3) for e in buffer)

    @pytest.mark.asyncio
    async def test_stops_after_max_samples(self, small_config, fake_capture, direction_state):
        capture = fake_capture()
        buffer = ReplayBuffer()
        sampler = ReplaySampler(capture, direction_state, buffer, small_config)

        await sampler.start_sampling(interval=0, max_samples=3)
        await asyncio.sleep(0)

        assert len(buffer) == 3
        assert capture.calls == 3
        assert not sampler.running

    @pytest.mark.asyncio
    async def test_skipped_ticks_do_not_use_slots_by_default(self, small_config, fake_capture, frame_factory,
                                                           direction_state):
        script = [frame_factory(), None, frame_factory(), None, frame_factory()]
        buffer = ReplayBuffer()
        sampler = ReplaySampler(fake_capture(script), direction_state, buffer, small_config)

        await sampler.start_sampling(interval=0, max_samples=3)

        assert len(buffer) == 3
        assert sampler.ticks_skipped == 2
        assert sampler.samples_taken == 3

    @pytest.mark.asyncio
    async def test_skipped_ticks_can_count_toward_max_samples(self, fake_capture, frame_factory, direction_state):
        config = SessionConfig(target_width=32, target_height=32, sample_interval=0, count_skipped_ticks=True)
        script = [frame_factory(), None, frame_factory(), None, frame_factory()]
        buffer = ReplayBuffer()
        sampler = ReplaySampler(fake_capture(script), direction_state, buffer, config)

        await sampler.start_sampling(interval=0, max_samples=3)

        assert len(buffer) == 2
        assert sampler.ticks_skipped == 1

    @pytest.mark.asyncio
    async def test_full_buffer_ends_sampling(self, small_config, fake_capture, direction_state):
        buffer = ReplayBuffer(max_size=2)
        sampler = ReplaySampler(fake_capture(), direction_state, buffer, small_config)

        await sampler.start_sampling(interval=0, max_samples=5)

        assert len(buffer) == 2

    @pytest.mark.asyncio
    async def test_stop_keeps_collected_entries(self, small_config, fake_capture, direction_state):
        buffer = ReplayBuffer()
        sampler = ReplaySampler(fake_capture(), direction_state, buffer, small_config)

        sampler.start_sampling(interval=0.01, max_samples=1000)
        while len(buffer) < 2:
            await asyncio.sleep(0.005)
        sampler.stop()
        await sampler.wait()

        collected = len(buffer)
        assert collected >= 2
        assert not sampler.running
        await asyncio.sleep(0.05)
        assert len(buffer) == collected

    @pytest.mark.asyncio
    async def test_cannot_start_twice(self, small_config, fake_capture, direction_state):
        sampler = ReplaySampler(fake_capture(), direction_state, ReplayBuffer(), small_config)
        sampler.start_sampling(interval=0.01, max_samples=100)
        with pytest.raises(RuntimeError):
            sampler.start_sampling()
        sampler.stop()
        await sampler.wait()

    @pytest.mark.asyncio
    async def test_display_receives_each_canvas(self, small_config, fake_capture, direction_state):
        shown = []

        class Sink:
            def show(self, canvas, output=None):
                shown.append(canvas.shape)

        sampler = ReplaySampler(fake_capture(), direction_state, ReplayBuffer(), small_config, display=Sink())
        await sampler.start_sampling(interval=0, max_samples=2)
        assert shown == [(32, 32, 3), (32, 32, 3)]


@pytest.mark.asyncio
async def test_exhausted_file_source_ends_sampling(tmp_path, small_config, direction_state):
    from PIL import Image

    from imitation_agent.vision.capture import FileCapture

    Image.new("RGB", (8, 8), (40, 40, 40)).save(tmp_path / "only.png")
    buffer = ReplayBuffer()
    sampler = ReplaySampler(FileCapture(tmp_path), direction_state, buffer, small_config)

    await asyncio.wait_for(sampler.start_sampling(interval=0, max_samples=3), timeout=2)

    assert len(buffer) == 1
    assert sampler.ticks_skipped == 0
    assert not sampler.running

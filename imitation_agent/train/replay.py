"""
Replay buffer of labelled frames and the timer-driven sampler that fills it.

Every sample is one (canvas, label) pair: the normalised screen capture and
the direction keys the operator held at that moment. Insertion order is the
order frames were captured and the order they are trained on.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Protocol

import cv2
import numpy as np

from ..control.directions import OUTPUT_COUNT, DirectionState, Label, encode
from ..exceptions import CaptureExhausted, CaptureUnavailable, ReplayBufferFull
from ..vision.scaling import fit_to_canvas
from .config import SessionConfig

logger = logging.getLogger(__name__)


class CaptureSource(Protocol):
    async def request_capture(self) -> np.ndarray: ...


@dataclass(frozen=True, eq=False)
class ReplayEntry:
    """One labelled training example. Immutable once created."""
    image: np.ndarray
    label: Label
    index: int = field(default=-1)

    def __post_init__(self):
        image = np.array(self.image, dtype=np.uint8, copy=True)
        image.setflags(write=False)
        object.__setattr__(self, "image", image)

        label = tuple(int(v) for v in self.label)
        if len(label) != OUTPUT_COUNT or any(v not in (0, 1) for v in label):
            raise ValueError(f"Invalid label {self.label!r}")
        object.__setattr__(self, "label", label)


class ReplayBuffer:
    """
    Append-only, ordered store of ReplayEntry.

    Unbounded unless max_size is given. A bounded buffer refuses new entries
    once full instead of evicting old ones, so indices never shift.
    """

    def __init__(self, max_size: int | None = None):
        self.max_size = max_size
        self._entries: list[ReplayEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> ReplayEntry:
        return self._entries[index]

    def __iter__(self) -> Iterator[ReplayEntry]:
        return iter(self._entries)

    @property
    def entries(self) -> tuple[ReplayEntry, ...]:
        return tuple(self._entries)

    @property
    def full(self) -> bool:
        return self.max_size is not None and len(self._entries) >= self.max_size

    def append(self, image: np.ndarray, label: Label) -> ReplayEntry:
        """Store a new entry at the end of the buffer."""
        if self.full:
            raise ReplayBufferFull(f"Replay buffer is full ({self.max_size} entries)")
        entry = ReplayEntry(image=image, label=label, index=len(self._entries))
        self._entries.append(entry)
        return entry

    def label_counts(self) -> dict[Label, int]:
        """How often each label occurs. Handy to spot a lopsided dataset."""
        counts: dict[Label, int] = {}
        for entry in self._entries:
            counts[entry.label] = counts.get(entry.label, 0) + 1
        return counts

    def save(self, path: str | Path) -> Path:
        """Save images and labels to a compressed .npz file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        if self._entries:
            images = np.stack([e.image for e in self._entries])
        else:
            images = np.zeros((0, 0, 0, 3), dtype=np.uint8)
        labels = np.array([e.label for e in self._entries], dtype=np.uint8).reshape(-1, OUTPUT_COUNT)

        with open(path, "wb") as f:
            np.savez_compressed(f, images=images, labels=labels)
        logger.info("Saved %d replay entries to %s", len(self._entries), path)
        return path

    @classmethod
    def load(cls, path: str | Path, max_size: int | None = None) -> "ReplayBuffer":
        """Load a buffer written by save()."""
        with np.load(path) as data:
            images = data["images"]
            labels = data["labels"]

        buffer = cls(max_size=max_size)
        for image, label in zip(images, labels):
            buffer.append(image, tuple(int(v) for v in label))
        logger.info("Loaded %d replay entries from %s", len(buffer), path)
        return buffer

    def export_frames(self, output_dir: str | Path) -> Path:
        """
        Write every entry as a PNG plus a labels.json index.

        Useful for eyeballing what the classifier is trained on.
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        index = []
        for i, entry in enumerate(self._entries):
            filename = f"frame_{i:05d}.png"
            cv2.imwrite(str(output_dir / filename), entry.image)
            index.append({"file_name": filename, "label": list(entry.label)})

        labels_path = output_dir / "labels.json"
        with open(labels_path, "w") as f:
            json.dump(index, f, indent=2)

        logger.info("Exported %d frames to %s", len(index), output_dir)
        return labels_path


class ReplaySampler:
    """
    Fill a ReplayBuffer from a capture source at a fixed interval.

    One asyncio task does all the sampling, so ticks never overlap: each
    capture is normalised and appended before the next interval starts.
    """

    def __init__(
        self,
        capture_source: CaptureSource,
        state: DirectionState,
        buffer: ReplayBuffer,
        config: SessionConfig,
        display=None,
    ):
        """
        Args:
            capture_source: Anything with an async request_capture()
            state: Shared direction state, read once per tick
            buffer: Buffer to append to
            config: Target size, letterbox mode and skipped-tick accounting
            display: Optional sink with show(canvas) for live preview
        """
        self.capture_source = capture_source
        self.state = state
        self.buffer = buffer
        self.config = config
        self.display = display

        self.samples_taken = 0
        self.ticks_skipped = 0
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start_sampling(self, interval: float | None = None, max_samples: int | None = None) -> asyncio.Task:
        """
        Start the sampling task. Must be called from inside a running loop.

        Args:
            interval: Seconds between ticks (config.sample_interval if None)
            max_samples: Ticks to count before stopping (config.max_samples if None)
        """
        if self.running:
            raise RuntimeError("Sampling is already running")

        interval = self.config.sample_interval if interval is None else interval
        max_samples = self.config.max_samples if max_samples is None else max_samples

        logger.info("Capturing training data every %.3fs, %d samples. Use the arrow keys to move.",
                    interval, max_samples)
        self._task = asyncio.create_task(self._run(interval, max_samples), name="replay-sampler")
        return self._task

    async def sample_once(self) -> ReplayEntry:
        """Capture, normalise, label and append one entry."""
        frame = await self.capture_source.request_capture()
        canvas = fit_to_canvas(
            frame,
            self.config.target_width,
            self.config.target_height,
            letterbox=self.config.letterbox,
        )
        label = encode(self.state)
        entry = self.buffer.append(canvas, label)
        self.samples_taken += 1

        if self.display is not None:
            self.display.show(canvas)
        logger.debug("Sample %d: label=%s", entry.index, list(label))
        return entry

    async def _run(self, interval: float, max_samples: int):
        counted = 0
        while counted < max_samples:
            await asyncio.sleep(interval)
            try:
                await self.sample_once()
            except CaptureExhausted as e:
                logger.warning("%s, stopping sampling", e)
                break
            except CaptureUnavailable as e:
                self.ticks_skipped += 1
                logger.warning("Capture unavailable, skipping tick: %s", e)
                if self.config.count_skipped_ticks:
                    counted += 1
                continue
            except ReplayBufferFull as e:
                logger.warning("%s, stopping sampling", e)
                break
            counted += 1

        logger.info("Sampling finished: %d samples, %d skipped ticks, buffer size %d",
                    self.samples_taken, self.ticks_skipped, len(self.buffer))

    def stop(self):
        """Cancel sampling. Entries already appended stay in the buffer."""
        if self.running:
            self._task.cancel()
            logger.info("Sampling stopped after %d samples", self.samples_taken)

    async def wait(self):
        """Wait for the current sampling task to finish or be cancelled."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise

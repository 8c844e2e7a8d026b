"""
Direction state and its label encoding.

The label order is fixed for the lifetime of a model. A classifier trained
with one order is meaningless under another, so checkpoints record it.
"""

from dataclasses import dataclass, fields
from typing import Sequence

DIRECTION_ORDER = ("up", "right", "down", "left")
OUTPUT_COUNT = len(DIRECTION_ORDER)

Label = tuple[int, int, int, int]


@dataclass
class DirectionState:
    """Which direction keys are currently held. Diagonals are allowed."""
    up: bool = False
    right: bool = False
    down: bool = False
    left: bool = False

    def set(self, direction: str, held: bool):
        if direction not in DIRECTION_ORDER:
            raise KeyError(f"Unknown direction: {direction}")
        setattr(self, direction, held)

    def clear(self):
        for f in fields(self):
            setattr(self, f.name, False)

    def snapshot(self) -> "DirectionState":
        return DirectionState(self.up, self.right, self.down, self.left)

    def __str__(self) -> str:
        held = [name for name in DIRECTION_ORDER if getattr(self, name)]
        return "+".join(held) if held else "none"


def encode(state: DirectionState) -> Label:
    """[up, right, down, left] as 0/1 flags."""
    return tuple(int(bool(getattr(state, name))) for name in DIRECTION_ORDER)


def decode(label: Sequence[int]) -> DirectionState:
    """Inverse of encode(). Only exact 0/1 values are accepted."""
    values = list(label)
    if len(values) != OUTPUT_COUNT:
        raise ValueError(f"Label must have {OUTPUT_COUNT} elements: {list(DIRECTION_ORDER)}")
    for v in values:
        if v not in (0, 1):
            raise ValueError(f"Label values must be 0 or 1, got {v!r}")
    return DirectionState(*(bool(v) for v in values))


def binarize(output: Sequence[float], threshold: float = 0.5) -> Label:
    """Turn a raw classifier output vector into a 0/1 label."""
    values = [float(v) for v in output]
    if len(values) != OUTPUT_COUNT:
        raise ValueError(f"Output must have {OUTPUT_COUNT} elements, got {len(values)}")
    return tuple(int(v >= threshold) for v in values)

from .directions import DIRECTION_ORDER, OUTPUT_COUNT, DirectionState, encode, decode, binarize
from .keyboard import KeyStateTracker

__all__ = [
    "DIRECTION_ORDER",
    "OUTPUT_COUNT",
    "DirectionState",
    "encode",
    "decode",
    "binarize",
    "KeyStateTracker",
]

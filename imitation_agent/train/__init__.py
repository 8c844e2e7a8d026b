from .config import SessionConfig, DEFAULT_CONFIG, FAST_TEST_CONFIG, LONG_SESSION_CONFIG, PRESETS
from .replay import ReplayEntry, ReplayBuffer, ReplaySampler
from .model import DirectionCNN, TorchClassifier, FitResult
from .trainer import TrainingLoop, StepResult, EvalResult, Classifier

__all__ = [
    "SessionConfig",
    "DEFAULT_CONFIG",
    "FAST_TEST_CONFIG",
    "LONG_SESSION_CONFIG",
    "PRESETS",
    "ReplayEntry",
    "ReplayBuffer",
    "ReplaySampler",
    "DirectionCNN",
    "TorchClassifier",
    "FitResult",
    "TrainingLoop",
    "StepResult",
    "EvalResult",
    "Classifier",
]

"""
Session configuration for capture, training and inference.
"""

from dataclasses import asdict, dataclass, fields


@dataclass
class SessionConfig:
    """Configuration for one imitation session."""

    # Classifier input canvas
    target_width: int = 224
    target_height: int = 224
    letterbox: bool = False  # True = cover/crop. Sampling only; inference always uses False

    # Sampling
    sample_interval: float = 0.25  # Seconds between captures
    max_samples: int = 50
    count_skipped_ticks: bool = False  # Does a failed capture use up a sample slot?
    max_buffer_size: int | None = None  # None = unbounded replay buffer

    # Training
    train_iterations: int | None = None  # None = train on the whole buffer
    batch_size: int = 5  # Passed through to fit(); each step sees one example
    epochs_per_step: int = 1
    learning_rate: float = 0.01
    num_test_examples: int = 10  # Tail of the buffer used by evaluate()

    # Inference
    prediction_threshold: float = 0.5

    # Hardware
    device: str = "cpu"  # "cpu" or "cuda"

    def __post_init__(self):
        if self.target_width <= 0 or self.target_height <= 0:
            raise ValueError(
                f"Target size must be positive, got {self.target_width}x{self.target_height}"
            )
        if self.sample_interval < 0:
            raise ValueError(f"sample_interval must be >= 0, got {self.sample_interval}")
        if self.max_samples < 0:
            raise ValueError(f"max_samples must be >= 0, got {self.max_samples}")
        if self.max_buffer_size is not None and self.max_buffer_size <= 0:
            raise ValueError(f"max_buffer_size must be positive or None, got {self.max_buffer_size}")
        if self.train_iterations is not None and self.train_iterations < 0:
            raise ValueError(f"train_iterations must be >= 0, got {self.train_iterations}")
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.epochs_per_step <= 0:
            raise ValueError(f"epochs_per_step must be positive, got {self.epochs_per_step}")
        if not 0.0 < self.prediction_threshold < 1.0:
            raise ValueError(
                f"prediction_threshold must be in (0, 1), got {self.prediction_threshold}"
            )

    @property
    def target_size(self) -> tuple[int, int]:
        """(width, height) of the classifier canvas."""
        return self.target_width, self.target_height

    def to_fit_kwargs(self) -> dict:
        """Keyword arguments for one classifier fit() call."""
        return {
            "epochs": self.epochs_per_step,
            "batch_size": self.batch_size,
        }

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "SessionConfig":
        """Build a config from a dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


# Preset configurations
DEFAULT_CONFIG = SessionConfig()

FAST_TEST_CONFIG = SessionConfig(
    target_width=64,
    target_height=64,
    sample_interval=0.05,
    max_samples=10,
    batch_size=1,
    num_test_examples=2,
)

LONG_SESSION_CONFIG = SessionConfig(
    sample_interval=0.1,
    max_samples=1000,
    max_buffer_size=5000,
    num_test_examples=100,
)

PRESETS = {
    "default": DEFAULT_CONFIG,
    "fast": FAST_TEST_CONFIG,
    "long": LONG_SESSION_CONFIG,
}

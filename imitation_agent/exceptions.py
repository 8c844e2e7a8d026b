"""Errors raised by the imitation pipeline."""


class ImitationAgentError(Exception):
    """Base error for the package."""
    pass


class CaptureUnavailable(ImitationAgentError):
    """The capture source could not produce a frame right now."""
    pass


class BufferUnderrun(ImitationAgentError, IndexError):
    """Training asked for more examples than the replay buffer holds."""

    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Requested {requested} training iterations but the replay buffer "
            f"only holds {available} entries"
        )


class ReplayBufferFull(ImitationAgentError):
    """A bounded replay buffer refused another entry."""
    pass


class CaptureExhausted(CaptureUnavailable):
    """The capture source has no more frames and never will."""
    pass

from .inference import DirectionPredictor
from .session import ImitationSession

__all__ = ["DirectionPredictor", "ImitationSession"]

"""
Learner Backends.

Training and verification are long-running, opaque functions from the
server's point of view. This package holds their interface and the
default implementation.
"""

from learners.histogram_learner import HistogramLearner
from learners.interfaces import (
    ImagePrediction,
    LearnerError,
    LearnerInterface,
    TrainingReport,
    VerificationResult,
)

__all__ = [
    # Interfaces
    "LearnerInterface",
    "LearnerError",
    # Implementations
    "HistogramLearner",
    # Data Classes
    "TrainingReport",
    "ImagePrediction",
    "VerificationResult",
]

"""
Learner Interface - Training and Verification Backend.

Defines the contract for the long-running functions the Job Orchestrator
drives: train a model from a labeled directory tree while reporting
progress, and score a folder of unlabeled images against that model.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from pathlib import Path

ProgressFunc = Callable[[int], None]


class LearnerError(Exception):
    """Raised by a learner when training or prediction cannot complete."""


@dataclass
class TrainingReport:
    """
    Result of a training run.

    Attributes:
        classes: Label names the model distinguishes, in model order.
        image_count: Number of images the model was trained on.
        model_id: Identifier of the saved model.
    """

    classes: list[str]
    image_count: int
    model_id: str = ""


@dataclass
class ImagePrediction:
    name: str
    confidence: list[float]


@dataclass
class VerificationResult:
    """
    Per-image confidences; confidence[i] belongs to classes[i].
    """

    classes: list[str]
    images: list[ImagePrediction] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


class LearnerInterface(ABC):
    """
    Interface for dataset learners.

    Implementations should handle:
    - Reading <training-data>/<label>/<image> trees
    - Persisting the model into the given model directory
    - Loading that model again for prediction
    """

    @abstractmethod
    def train(
        self, training_dir: Path, model_dir: Path, progress: ProgressFunc
    ) -> TrainingReport:
        """
        Trains a model on every label directory below training_dir.

        Args:
            training_dir: Directory whose subdirectories are labels.
            model_dir: Directory the model is written to.
            progress: Called with an integer percentage (0-100).

        Returns:
            TrainingReport describing the saved model.
        """
        pass

    @abstractmethod
    def predict(self, verify_dir: Path, model_dir: Path) -> VerificationResult:
        """
        Scores every image in verify_dir against the model in model_dir.

        Returns:
            VerificationResult with one confidence vector per image.
        """
        pass

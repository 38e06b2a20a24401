# ------------------------------------------------------------------------------
# Colour-histogram nearest-centroid learner
# learners/histogram_learner.py
# ------------------------------------------------------------------------------
import logging
from datetime import datetime
from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError

from learners.interfaces import (
    ImagePrediction,
    LearnerError,
    LearnerInterface,
    ProgressFunc,
    TrainingReport,
    VerificationResult,
)
from utils.model_manifest import load_manifest, save_manifest

logger = logging.getLogger(__name__)

MODEL_FILENAME = "centroids.npz"


def _visible_files(directory: Path) -> list[Path]:
    return sorted(
        p for p in directory.iterdir() if p.is_file() and not p.name.startswith(".")
    )


def softmax(logits: np.ndarray) -> np.ndarray:
    shifted = logits - np.max(logits)
    exp = np.exp(shifted)
    return exp / exp.sum()


class HistogramLearner(LearnerInterface):
    """
    Default learner: every image becomes a normalised RGB histogram, every
    label the mean of its images' histograms. Prediction is a softmax over
    negative distances to the label centroids.
    """

    def __init__(self, bins: int = 16, image_size: int = 64, temperature: float = 10.0):
        self.bins = bins
        self.image_size = image_size
        self.temperature = temperature

    def _features(self, path: Path) -> np.ndarray | None:
        """Returns the feature vector, or None if the file is not a readable image."""
        try:
            with Image.open(path) as img:
                rgb = img.convert("RGB").resize((self.image_size, self.image_size))
                pixels = np.asarray(rgb)
        except (OSError, UnidentifiedImageError) as e:
            logger.warning(f"Skipping unreadable image {path.name}: {e}")
            return None

        hist = np.concatenate(
            [
                np.histogram(pixels[..., channel], bins=self.bins, range=(0, 256))[0]
                for channel in range(3)
            ]
        ).astype(np.float64)
        total = hist.sum()
        return hist / total if total else hist

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def train(
        self, training_dir: Path, model_dir: Path, progress: ProgressFunc
    ) -> TrainingReport:
        training_dir = Path(training_dir)
        if not training_dir.is_dir():
            raise LearnerError(f"Training directory missing: {training_dir}")

        labels = {
            entry.name: _visible_files(entry)
            for entry in sorted(training_dir.iterdir())
            if entry.is_dir() and not entry.name.startswith(".")
        }
        total = sum(len(files) for files in labels.values())
        if total == 0:
            raise LearnerError("No training images found")

        progress(0)
        last_percent = 0
        done = 0
        classes = []
        centroids = []
        for label, files in labels.items():
            features = []
            for path in files:
                feature = self._features(path)
                if feature is not None:
                    features.append(feature)
                done += 1
                percent = int(done * 100 / total)
                if percent != last_percent:
                    last_percent = percent
                    progress(percent)
            if not features:
                logger.info(f"Label {label} has no usable images, left out of the model")
                continue
            classes.append(label)
            centroids.append(np.mean(features, axis=0))

        if not classes:
            raise LearnerError("No readable training images found")

        model_dir = Path(model_dir)
        model_dir.mkdir(parents=True, exist_ok=True)
        np.savez(
            model_dir / MODEL_FILENAME,
            classes=np.array(classes),
            centroids=np.stack(centroids),
        )
        model_id = datetime.now().strftime("%Y%m%d_%H%M%S")
        save_manifest(
            {
                "model_id": model_id,
                "learner": type(self).__name__,
                "classes": classes,
                "image_count": total,
                "bins": self.bins,
                "image_size": self.image_size,
            },
            model_dir,
        )
        logger.info(f"Trained model {model_id} on {total} images, {len(classes)} classes")
        return TrainingReport(classes=classes, image_count=total, model_id=model_id)

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    def predict(self, verify_dir: Path, model_dir: Path) -> VerificationResult:
        model_path = Path(model_dir) / MODEL_FILENAME
        if not model_path.exists():
            raise LearnerError("No trained model for this project")

        manifest = load_manifest(model_dir)
        if manifest.get("bins", self.bins) != self.bins:
            raise LearnerError(
                f"Model was trained with {manifest['bins']} bins, learner uses {self.bins}"
            )

        with np.load(model_path, allow_pickle=False) as data:
            classes = [str(c) for c in data["classes"]]
            centroids = data["centroids"]

        result = VerificationResult(classes=classes)
        for path in _visible_files(Path(verify_dir)):
            feature = self._features(path)
            if feature is None:
                continue
            distances = np.linalg.norm(centroids - feature, axis=1)
            confidence = softmax(-distances * self.temperature)
            result.images.append(
                ImagePrediction(
                    name=path.name,
                    confidence=[round(float(c), 6) for c in confidence],
                )
            )
        return result

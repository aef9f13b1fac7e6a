"""
Online logistic classifier separating "core" sprite components from "fx" overlays.

The model is a bias and one weight per feature. It is loaded once per run, nudged by
every processed sheet through learn_from(), and saved at the end of the run as a two
line text record:

    <bias>
    <weight>,<weight>,<weight>,<weight>
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

import numpy as np

from spritesheet_slicer.errors import ModelLoadError, ModelSaveError
from spritesheet_slicer.geometry import rects_intersect
from spritesheet_slicer.models import FrameSlice
from spritesheet_slicer.segmentation import Component

logger = logging.getLogger(__name__)

LEARNING_RATE = 0.05
DEFAULT_WEIGHTS = (0.6, 0.2, -0.1, -0.05)
FEATURE_NAMES = ("area", "density", "solidity", "color_variance")

AREA_SCALE = 10000.0
VARIANCE_SCALE = 5000.0


def component_features(component: Component) -> np.ndarray:
    """Feature vector: normalized area, density, solidity, normalized color variance."""
    return np.array([
        min(1.0, component.area / AREA_SCALE),
        component.density,
        component.solidity,
        min(1.0, component.color_variance / VARIANCE_SCALE),
    ], dtype=np.float64)


def sigmoid(z: float) -> float:
    if z >= 0:
        return 1.0 / (1.0 + math.exp(-z))
    ez = math.exp(z)
    return ez / (1.0 + ez)


@dataclass
class ClassifierModel:
    """Bias and weights of the logistic model."""
    bias: float = 0.0
    weights: np.ndarray = field(default_factory=lambda: np.array(DEFAULT_WEIGHTS, dtype=np.float64))

    def to_text(self) -> str:
        return f"{float(self.bias)!r}\n{','.join(repr(float(w)) for w in self.weights)}\n"

    @classmethod
    def from_text(cls, text: str) -> "ClassifierModel":
        """
        Parse a persisted record. Missing lines fall back to the defaults.

        Raises:
            ValueError: If a number cannot be parsed, is not finite, or the weight count is wrong.
        """
        lines = text.splitlines()
        bias_line = lines[0].strip() if len(lines) > 0 else ""
        weight_line = lines[1].strip() if len(lines) > 1 else ""

        bias = float(bias_line) if bias_line else 0.0
        if weight_line:
            weights = np.array([float(part) for part in weight_line.split(",")], dtype=np.float64)
        else:
            weights = np.array(DEFAULT_WEIGHTS, dtype=np.float64)

        if len(weights) != len(FEATURE_NAMES):
            raise ValueError(f"expected {len(FEATURE_NAMES)} weights, got {len(weights)}")
        if not (math.isfinite(bias) and np.all(np.isfinite(weights))):
            raise ValueError("model values must be finite")
        return cls(bias=bias, weights=weights)


class CoreVsFxClassifier:
    """
    Scores components in [0, 1], higher meaning more likely part of the sprite body.

    A single instance is shared by all sheets of a run; learning and scoring are guarded
    by a lock so sheets can be processed on several threads.
    """

    def __init__(self, model_path: Path | None, model: ClassifierModel | None = None):
        self.model_path = model_path
        self.model = model if model is not None else ClassifierModel()
        self._lock = threading.RLock()

    @classmethod
    def load_or_create(cls, model_path: str | Path) -> "CoreVsFxClassifier":
        """
        Load the model record at model_path, or start from the default weights if it is absent.

        Raises:
            ModelLoadError: If the record exists but cannot be read or parsed.
        """
        model_path = Path(model_path)
        if not model_path.exists():
            logger.info("No classifier model at %s, using defaults", model_path)
            return cls(model_path)

        try:
            model = ClassifierModel.from_text(model_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ModelLoadError(f"Failed to read classifier model {model_path}: {e}") from e

        logger.info("Loaded classifier model from %s", model_path)
        return cls(model_path, model)

    def save(self, model_path: str | Path | None = None) -> Path:
        """
        Write the model record, creating parent directories as needed.

        Raises:
            ModelSaveError: If no path is known or the file cannot be written.
        """
        path = Path(model_path) if model_path is not None else self.model_path
        if path is None:
            raise ModelSaveError("No path to save the classifier model to")

        with self._lock:
            text = self.model.to_text()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise ModelSaveError(f"Failed to save classifier model {path}: {e}") from e

        logger.info("Saved classifier model to %s", path)
        return path

    @property
    def bias(self) -> float:
        return float(self.model.bias)

    @property
    def weights(self) -> np.ndarray:
        return self.model.weights.copy()

    def score_features(self, features: np.ndarray) -> float:
        with self._lock:
            return sigmoid(float(self.model.bias + np.dot(self.model.weights, features)))

    def score(self, component: Component) -> float:
        return self.score_features(component_features(component))

    @staticmethod
    def derive_label(
        component: Component,
        max_area: float,
        avg_area: float,
        frames: Sequence[FrameSlice]
    ) -> float | None:
        """
        Self-supervised training label for a component.

        Large components are core (1.0); small, noisy, sparse ones are fx (0.0). Anything
        else is core if it overlaps an extracted frame, and unlabelled (None) otherwise.
        """
        area = component.area
        if area >= 0.4 * max_area:
            return 1.0
        if area <= 0.15 * avg_area and component.color_variance > 1500 and component.density < 0.4:
            return 0.0
        if any(rects_intersect(frame.bounds, component.bounds) for frame in frames):
            return 1.0
        return None

    def learn_from(self, components: Sequence[Component], frames: Sequence[FrameSlice]) -> int:
        """
        One stochastic gradient pass over a sheet's components.

        Returns:
            Number of components that produced an update
        """
        if not components:
            return 0

        areas = [float(c.area) for c in components]
        max_area = max(areas)
        avg_area = sum(areas) / len(areas)

        updates = 0
        with self._lock:
            for component in components:
                label = self.derive_label(component, max_area, avg_area, frames)
                if label is None:
                    continue
                features = component_features(component)
                error = label - self.score_features(features)
                self.model.weights += LEARNING_RATE * error * features
                self.model.bias += LEARNING_RATE * error
                updates += 1

        logger.debug("Classifier updated from %d of %d components", updates, len(components))
        return updates

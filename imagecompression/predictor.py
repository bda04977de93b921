"""Quality prediction for the predicted compression method.

Two interchangeable backends estimate an optimal quality from image size
and dimensions:

RuleBasedPredictor: fixed thresholds on file size and pixel count.
RegressionPredictor: linear regressor fitted on seeded synthetic data.

CompressionPredictor owns one of each. The regression model is built once,
on first use, behind a lock; any failure to build or use it falls back to
the rule-based backend.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

import joblib
import numpy as np
from sklearn.linear_model import SGDRegressor
from sklearn.pipeline import Pipeline, make_pipeline
from sklearn.preprocessing import StandardScaler

from .errors import PredictorUnavailable
from .utils import DecodedImage, get_aspect_ratio

logger = logging.getLogger(__name__)

# Output bounds
MIN_PREDICTED_QUALITY = 10
MAX_PREDICTED_QUALITY = 95
MIN_PREDICTED_RATIO = 0.1
MAX_PREDICTED_RATIO = 0.9

# Rule-based thresholds
LARGE_FILE_BYTES = 5_000_000
SMALL_FILE_BYTES = 500_000
LARGE_PIXEL_COUNT = 8_000_000
FALLBACK_QUALITY = 80
LARGE_FILE_QUALITY = 70
SMALL_FILE_QUALITY = 90
LARGE_IMAGE_QUALITY_CAP = 75
FALLBACK_RATIO = 0.6
FALLBACK_CONFIDENCE = 0.7

REGRESSION_CONFIDENCE = 0.8

# Synthetic training set
TRAINING_SEED = 42
TRAINING_SAMPLES = 1000
TRAINING_MAX_ITERATIONS = 100


@dataclass(frozen=True)
class ImageFeatures:
    """Inputs to the quality predictors.

    Attributes:
        width: Image width in pixels
        height: Image height in pixels
        file_size: Encoded size in bytes
        format: Source format name
    """
    width: int
    height: int
    file_size: int
    format: str = ""

    @property
    def aspect_ratio(self) -> float:
        return get_aspect_ratio(self.width, self.height)

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @classmethod
    def from_image(cls, image: DecodedImage, file_size: int) -> 'ImageFeatures':
        return cls(image.width, image.height, file_size, image.format)


@dataclass(frozen=True)
class CompressionPrediction:
    """Predicted compression settings.

    Attributes:
        optimal_quality: Suggested quality (10-95)
        predicted_compression_ratio: Expected fraction saved (0.1-0.9)
        confidence: Confidence in the prediction (0-1)
        recommended_format: Suggested output format tag
        backend: Name of the backend that produced the prediction
    """
    optimal_quality: int
    predicted_compression_ratio: float
    confidence: float
    recommended_format: str = "jpeg"
    backend: str = ""

    def clamped(self) -> 'CompressionPrediction':
        """Copy with every field forced into its range."""
        return CompressionPrediction(
            optimal_quality=int(max(MIN_PREDICTED_QUALITY, min(MAX_PREDICTED_QUALITY, self.optimal_quality))),
            predicted_compression_ratio=float(
                max(MIN_PREDICTED_RATIO, min(MAX_PREDICTED_RATIO, self.predicted_compression_ratio))
            ),
            confidence=float(max(0.0, min(1.0, self.confidence))),
            recommended_format=self.recommended_format,
            backend=self.backend,
        )


@dataclass(frozen=True)
class ModelInfo:
    """Information about the predictor model."""
    name: str = "ImageCompressionOptimizer"
    version: str = "1.0.0"
    description: str = "Linear regressor predicting optimal image compression quality"
    is_loaded: bool = False
    loaded_at: Optional[datetime] = None
    backend: str = ""


class PredictorBackend(ABC):
    """Abstract base class for quality predictors."""

    name: str

    @abstractmethod
    def predict(self, features: ImageFeatures) -> CompressionPrediction:
        """Predict compression settings.

        Args:
            features: Image size and dimensions

        Returns:
            CompressionPrediction (not yet clamped)
        """
        pass


class RuleBasedPredictor(PredictorBackend):
    """Fixed-threshold predictor, always available."""

    name = "rules"

    def predict(self, features: ImageFeatures) -> CompressionPrediction:
        quality = FALLBACK_QUALITY

        # Adjust based on file size
        if features.file_size > LARGE_FILE_BYTES:
            quality = LARGE_FILE_QUALITY
        elif features.file_size < SMALL_FILE_BYTES:
            quality = SMALL_FILE_QUALITY

        # Cap large images
        if features.pixel_count > LARGE_PIXEL_COUNT:
            quality = min(quality, LARGE_IMAGE_QUALITY_CAP)

        return CompressionPrediction(
            optimal_quality=quality,
            predicted_compression_ratio=FALLBACK_RATIO,
            confidence=FALLBACK_CONFIDENCE,
            recommended_format="jpeg",
            backend=self.name,
        )


def generate_training_data(
    samples: int = TRAINING_SAMPLES,
    seed: int = TRAINING_SEED,
):
    """Generate the seeded synthetic training set.

    Quality labels depend on a random complexity value (60 + complexity * 30),
    which is not one of the model's features.

    Returns:
        Tuple of (features, labels): (samples, 4) array of
        [width, height, aspect_ratio, file_size] and (samples,) array
    """
    rng = np.random.default_rng(seed)
    width = rng.integers(100, 4000, size=samples)
    height = rng.integers(100, 4000, size=samples)
    file_size = rng.integers(50_000, 20_000_000, size=samples)
    complexity = rng.random(samples)

    features = np.column_stack([width, height, width / height, file_size]).astype(np.float64)
    labels = 60 + complexity * 30
    return features, labels


def _feature_row(features: ImageFeatures) -> np.ndarray:
    return np.array(
        [[features.width, features.height, features.aspect_ratio, features.file_size]],
        dtype=np.float64,
    )


class RegressionPredictor(PredictorBackend):
    """Linear regression over width, height, aspect ratio and file size."""

    name = "regression"

    def __init__(self, model: Pipeline):
        self.model = model

    @classmethod
    def train_default(cls) -> 'RegressionPredictor':
        """Fit the default model on the synthetic training set.

        Raises:
            PredictorUnavailable: If fitting fails
        """
        features, labels = generate_training_data()
        model = make_pipeline(
            StandardScaler(),
            SGDRegressor(max_iter=TRAINING_MAX_ITERATIONS, tol=1e-3, random_state=TRAINING_SEED),
        )
        try:
            model.fit(features, labels)
        except ValueError as ex:
            raise PredictorUnavailable(f"Unable to fit default model: {ex}") from ex

        logger.info("Default regression model trained on %d samples", len(labels))
        return cls(model)

    @classmethod
    def load(cls, model_path: Union[str, Path]) -> 'RegressionPredictor':
        """Load a persisted model.

        Raises:
            PredictorUnavailable: If the file is missing or unreadable
        """
        model_path = Path(model_path)
        if not model_path.exists():
            raise PredictorUnavailable(f"Model file not found: {model_path}")

        try:
            model = joblib.load(model_path)
        except Exception as ex:
            raise PredictorUnavailable(f"Unable to load model {model_path}: {ex}") from ex

        if not hasattr(model, 'predict'):
            raise PredictorUnavailable(f"{model_path} does not contain a regression model")

        logger.info("Regression model loaded from %s", model_path)
        return cls(model)

    def save(self, model_path: Union[str, Path]) -> Path:
        """Persist the fitted model."""
        model_path = Path(model_path)
        model_path.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(self.model, model_path)
        return model_path

    def predict(self, features: ImageFeatures) -> CompressionPrediction:
        try:
            quality = float(np.ravel(self.model.predict(_feature_row(features)))[0])
        except Exception as ex:
            raise PredictorUnavailable(f"Regression prediction failed: {ex}") from ex

        if not np.isfinite(quality):
            raise PredictorUnavailable(f"Regression produced a non-finite quality: {quality}")

        return CompressionPrediction(
            optimal_quality=int(round(quality)),
            predicted_compression_ratio=1.0 - quality / 200.0,
            confidence=REGRESSION_CONFIDENCE,
            recommended_format="jpeg",
            backend=self.name,
        )


class CompressionPredictor:
    """Thread-safe predictor with lazy model loading and rule-based fallback.

    The regression backend is created at most once per predictor, on the
    first prediction (or explicitly via load_model), and is read-only after.
    """

    def __init__(
        self,
        model_path: Optional[Union[str, Path]] = None,
        primary: Optional[PredictorBackend] = None,
        fallback: Optional[PredictorBackend] = None,
    ):
        """Initialize predictor.

        Args:
            model_path: Persisted model to load on first use (None = train default)
            primary: Ready-made primary backend (skips lazy loading)
            fallback: Backend used when the primary is unavailable
        """
        self._model_path = Path(model_path) if model_path is not None else None
        self._fallback = fallback or RuleBasedPredictor()
        self._lock = threading.Lock()
        self._primary = primary
        self._initialized = primary is not None
        self._info = ModelInfo(
            is_loaded=primary is not None,
            loaded_at=datetime.now(timezone.utc) if primary is not None else None,
            backend=primary.name if primary is not None else "",
        )

    def _build_primary(self) -> Optional[PredictorBackend]:
        """Load the persisted model, training the default one if that fails."""
        if self._model_path is not None:
            try:
                return RegressionPredictor.load(self._model_path)
            except PredictorUnavailable as ex:
                logger.warning("%s, creating default model", ex)

        try:
            return RegressionPredictor.train_default()
        except PredictorUnavailable as ex:
            logger.warning("Regression predictor unavailable, using rules: %s", ex)
            return None

    def _set_primary(self, backend: Optional[PredictorBackend]):
        self._primary = backend
        self._initialized = True
        self._info = ModelInfo(
            is_loaded=backend is not None,
            loaded_at=datetime.now(timezone.utc) if backend is not None else None,
            backend=backend.name if backend is not None else self._fallback.name,
        )

    def _ensure_primary(self) -> Optional[PredictorBackend]:
        if not self._initialized:
            with self._lock:
                if not self._initialized:
                    self._set_primary(self._build_primary())
        return self._primary

    def predict(self, features: ImageFeatures) -> CompressionPrediction:
        """Predict compression settings, falling back to rules on any model failure.

        Args:
            features: Image size and dimensions

        Returns:
            Clamped CompressionPrediction
        """
        primary = self._ensure_primary()

        if primary is not None:
            try:
                return primary.predict(features).clamped()
            except Exception as ex:
                logger.warning("%s prediction failed, falling back to rules: %s", primary.name, ex)

        return self._fallback.predict(features).clamped()

    def load_model(self, model_path: Union[str, Path]) -> bool:
        """Load a persisted model, replacing the current one.

        A missing or unreadable file trains the default model instead.

        Returns:
            True if a regression model is available afterwards
        """
        with self._lock:
            self._model_path = Path(model_path)
            self._set_primary(self._build_primary())
            return self._primary is not None

    def save_model(self, model_path: Union[str, Path]) -> Path:
        """Persist the regression model.

        Raises:
            PredictorUnavailable: If no regression model is loaded
        """
        primary = self._ensure_primary()
        if not isinstance(primary, RegressionPredictor):
            raise PredictorUnavailable("No regression model to save")
        return primary.save(model_path)

    def model_info(self) -> ModelInfo:
        """Get information about the currently loaded model."""
        return self._info

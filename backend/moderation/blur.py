"""
Blur scoring for uploaded property photos.

The score comes from the variance of a 3x3 Laplacian over the luminance
channel: sharp photos have strong, uneven edge responses (high variance),
blurry ones do not. Scores run from 0.0 (sharp) to 1.0 (very blurry).

When the pixels cannot be decoded, a rough estimate from the file size per
pixel is used instead. Scoring never raises; the worst case is a
"very_poor" result carrying an error annotation.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from io import BytesIO
from typing import Any, Iterable, Protocol

import numpy as np
from PIL import Image, UnidentifiedImageError

from moderation.schemas import BlurMethod, BlurResult, QualityRating, RawImage

logger = logging.getLogger(__name__)

DEFAULT_BLUR_THRESHOLD = 0.3
# Rows of Laplacian output reduced per work unit.
BAND_ROWS = 256

_LUMA = np.array([0.299, 0.587, 0.114], dtype=np.float64)


class StrategyUnavailable(Exception):
    """Raised by a blur strategy that cannot score this particular image."""


def variance_to_blur_score(variance: float) -> float:
    if variance < 100:
        score = 0.8 + (100 - variance) / 100 * 0.2
    elif variance < 500:
        score = 0.5 + (500 - variance) / 400 * 0.3
    elif variance < 1000:
        score = 0.3 + (1000 - variance) / 500 * 0.2
    elif variance < 2000:
        score = 0.1 + (2000 - variance) / 1000 * 0.2
    else:
        score = min(0.1, max(0.0, 0.1 - (variance - 2000) / 10000))
    return max(0.0, min(1.0, score))


def quality_rating(blur_score: float) -> QualityRating:
    if blur_score > 0.6:
        return QualityRating.VERY_POOR
    if blur_score > 0.4:
        return QualityRating.POOR
    if blur_score > 0.2:
        return QualityRating.ACCEPTABLE
    return QualityRating.GOOD


def failed_result(error: str) -> BlurResult:
    return BlurResult(
        blur_score=1.0,
        is_blurry=True,
        quality_rating=QualityRating.VERY_POOR,
        method=BlurMethod.NONE,
        error=error,
    )


def to_luminance(pixels: Any, width: int, height: int) -> np.ndarray:
    """
    Returns a (height, width) int array of 8-bit luminance values.

    Accepts RGB(A) or single-channel data, either already shaped or flat.
    """
    arr = np.asarray(pixels)
    n = int(width) * int(height)
    if arr.size == n:
        gray = arr.reshape(int(height), int(width)).astype(np.float64)
    elif arr.size in (n * 3, n * 4):
        channels = arr.size // n
        rgb = arr.reshape(int(height), int(width), channels)[..., :3].astype(np.float64)
        gray = rgb @ _LUMA
    else:
        raise ValueError(f"pixel buffer has {arr.size} samples, expected {n} pixels")
    return np.clip(np.floor(gray), 0, 255).astype(np.int64)


def _band_moments(gray: np.ndarray, start: int, stop: int) -> tuple[int, int, int]:
    """(count, sum, sum of squares) of |Laplacian| for interior rows [start, stop)."""
    center = gray[start:stop, 1:-1]
    top = gray[start - 1 : stop - 1, 1:-1]
    bottom = gray[start + 1 : stop + 1, 1:-1]
    left = gray[start:stop, :-2]
    right = gray[start:stop, 2:]
    lap = np.abs(4 * center - top - bottom - left - right)
    return int(lap.size), int(lap.sum()), int((lap * lap).sum())


def laplacian_variance(gray: np.ndarray, *, workers: int = 1) -> float:
    """
    Population variance of the absolute Laplacian over the interior pixels.

    Row bands are reduced independently to (n, sum, sum_sq) and combined, so
    the result does not depend on how the bands are scheduled.
    """
    height, width = gray.shape
    if height < 3 or width < 3:
        raise ValueError("image must be at least 3x3 pixels")
    bands = [(start, min(start + BAND_ROWS, height - 1)) for start in range(1, height - 1, BAND_ROWS)]
    if workers > 1 and len(bands) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            parts = list(pool.map(lambda b: _band_moments(gray, *b), bands))
    else:
        parts = [_band_moments(gray, *b) for b in bands]
    n = sum(p[0] for p in parts)
    total = sum(p[1] for p in parts)
    total_sq = sum(p[2] for p in parts)
    mean = total / n
    return max(0.0, total_sq / n - mean * mean)


class BlurStrategy(Protocol):
    name: BlurMethod

    def __call__(self, raw: RawImage) -> BlurResult:
        ...


class PixelStrategy:
    """Decodes the image with Pillow and scores the actual pixels."""

    name = BlurMethod.PIXEL

    def __init__(self, scorer: "BlurScorer") -> None:
        self._scorer = scorer

    def __call__(self, raw: RawImage) -> BlurResult:
        try:
            with Image.open(BytesIO(raw.data)) as img:
                img = img.convert("RGB")
                width, height = img.size
                pixels = np.asarray(img)
        except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
            raise StrategyUnavailable(f"pixel decode failed: {e}") from e
        if width < 3 or height < 3:
            raise StrategyUnavailable(f"image too small for the Laplacian kernel: {width}x{height}")
        return self._scorer.score(pixels, width, height)


class FileSizeStrategy:
    """
    Rough estimate from bytes per pixel: heavily compressed files are usually soft.
    """

    name = BlurMethod.FALLBACK

    def __init__(self, threshold: float) -> None:
        self._threshold = threshold

    def _dimensions(self, raw: RawImage) -> tuple[int, int]:
        if raw.dimensions:
            return raw.dimensions
        try:
            with Image.open(BytesIO(raw.data)) as img:
                return img.size
        except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
            raise StrategyUnavailable(f"invalid image: {e}") from e

    def __call__(self, raw: RawImage) -> BlurResult:
        width, height = self._dimensions(raw)
        pixels = int(width) * int(height)
        if pixels <= 0:
            raise StrategyUnavailable("image has no pixels")
        size = int(raw.size_bytes or len(raw.data))
        bytes_per_pixel = size / pixels
        if bytes_per_pixel < 0.5:
            score = 0.7
        elif bytes_per_pixel < 1.0:
            score = 0.4
        elif bytes_per_pixel < 2.0:
            score = 0.2
        else:
            score = 0.1
        return BlurResult(
            blur_score=score,
            is_blurry=score > self._threshold,
            quality_rating=quality_rating(score),
            method=BlurMethod.FALLBACK,
        )


class BlurScorer:
    def __init__(
        self,
        threshold: float = DEFAULT_BLUR_THRESHOLD,
        *,
        workers: int = 1,
        strategies: Iterable[BlurStrategy] | None = None,
    ) -> None:
        self.threshold = float(threshold)
        self.workers = int(workers)
        if strategies is None:
            strategies = (PixelStrategy(self), FileSizeStrategy(self.threshold))
        self.strategies: tuple[BlurStrategy, ...] = tuple(strategies)

    def score(self, pixels: Any, width: int, height: int) -> BlurResult:
        """
        Score a raw pixel buffer of `width * height` RGB(A) or grayscale samples.
        """
        if int(width) < 3 or int(height) < 3:
            return failed_result(f"image too small for the Laplacian kernel: {width}x{height}")
        try:
            gray = to_luminance(pixels, width, height)
        except ValueError as e:
            return failed_result(str(e))
        variance = laplacian_variance(gray, workers=self.workers)
        blur_score = round(variance_to_blur_score(variance), 3)
        return BlurResult(
            blur_score=blur_score,
            is_blurry=blur_score > self.threshold,
            quality_rating=quality_rating(blur_score),
            method=BlurMethod.PIXEL,
            variance=round(variance, 2),
        )

    def score_image(self, raw: RawImage) -> BlurResult:
        """Try each strategy in order; the first one able to score wins."""
        errors: list[str] = []
        for strategy in self.strategies:
            try:
                result = strategy(raw)
            except StrategyUnavailable as e:
                errors.append(str(e))
                logger.warning("Blur strategy %s unavailable for %r: %s", strategy.name.value, raw.original_filename, e)
                continue
            return result
        return failed_result("; ".join(errors) or "no blur strategy configured")

"""Tests for blur scoring."""

import numpy as np
import pytest

from moderation.blur import (
    BlurScorer,
    FileSizeStrategy,
    laplacian_variance,
    quality_rating,
    to_luminance,
    variance_to_blur_score,
)
from moderation.schemas import BlurMethod, QualityRating, RawImage


def _checker(width=64, height=48, block=8):
    ys, xs = np.indices((height, width))
    return (((ys // block) + (xs // block)) % 2 * 255).astype(np.uint8)


def test_flat_image_is_very_blurry() -> None:
    gray = np.full((48, 64), 200, dtype=np.uint8)
    result = BlurScorer().score(gray, 64, 48)

    assert result.variance == pytest.approx(0.0)
    assert result.blur_score > 0.5
    assert result.blur_score == 1.0
    assert result.is_blurry
    assert result.quality_rating is QualityRating.VERY_POOR
    assert result.method is BlurMethod.PIXEL


def test_checkerboard_is_sharp() -> None:
    result = BlurScorer().score(_checker(), 64, 48)

    assert result.variance > 2000
    assert result.blur_score <= 0.1
    assert not result.is_blurry
    assert result.quality_rating is QualityRating.GOOD


def test_rgb_and_rgba_buffers_are_accepted() -> None:
    gray = _checker()
    rgb = np.repeat(gray[..., None], 3, axis=2)
    rgba = np.concatenate([rgb, np.full((48, 64, 1), 255, dtype=np.uint8)], axis=2)

    flat_rgb = BlurScorer().score(rgb.reshape(-1), 64, 48)
    shaped_rgba = BlurScorer().score(rgba, 64, 48)

    assert flat_rgb.blur_score == shaped_rgba.blur_score
    assert flat_rgb.blur_score <= 0.1


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_score_range_and_threshold_relation(seed) -> None:
    rng = np.random.default_rng(seed)
    gray = rng.integers(0, 256, size=(40, 50), dtype=np.uint8)
    # Smooth it a bit so scores spread across bands.
    gray = ((gray.astype(np.int64) + np.roll(gray, 1, axis=1) + np.roll(gray, 1, axis=0)) // 3).astype(np.uint8)
    for threshold in (0.05, 0.3, 0.9):
        result = BlurScorer(threshold).score(gray, 50, 40)
        assert 0.0 <= result.blur_score <= 1.0
        assert result.is_blurry == (result.blur_score > threshold)


def test_buffer_size_mismatch_does_not_raise() -> None:
    result = BlurScorer().score(np.zeros(10, dtype=np.uint8), 64, 48)

    assert result.blur_score == 1.0
    assert result.is_blurry
    assert result.method is BlurMethod.NONE
    assert result.error


def test_tiny_image_does_not_raise() -> None:
    result = BlurScorer().score(np.zeros((2, 2), dtype=np.uint8), 2, 2)

    assert result.blur_score == 1.0
    assert result.is_blurry


def test_banded_reduction_matches_single_pass() -> None:
    gray = to_luminance(_checker(width=96, height=700, block=5), 96, 700)

    assert laplacian_variance(gray, workers=4) == laplacian_variance(gray, workers=1)


def test_variance_bands_are_monotonic() -> None:
    variances = [0, 50, 100, 300, 500, 800, 1000, 1500, 2000, 5000, 20000]
    scores = [variance_to_blur_score(v) for v in variances]

    assert scores == sorted(scores, reverse=True)
    assert scores[0] == 1.0
    assert scores[-1] == 0.0
    assert variance_to_blur_score(2000) == pytest.approx(0.1)


def test_quality_rating_bands() -> None:
    assert quality_rating(0.1) is QualityRating.GOOD
    assert quality_rating(0.3) is QualityRating.ACCEPTABLE
    assert quality_rating(0.5) is QualityRating.POOR
    assert quality_rating(0.61) is QualityRating.VERY_POOR


def _raw(data: bytes, width=None, height=None) -> RawImage:
    return RawImage(
        path="/tmp/staged.jpg",
        data=data,
        mime_type="image/jpeg",
        original_filename="photo.jpg",
        size_bytes=len(data),
        width=width,
        height=height,
    )


def test_score_image_decodes_real_files(sharp_png, flat_png) -> None:
    scorer = BlurScorer()

    sharp = scorer.score_image(_raw(sharp_png))
    flat = scorer.score_image(_raw(flat_png))

    assert sharp.method is BlurMethod.PIXEL
    assert not sharp.is_blurry
    assert flat.is_blurry


def test_corrupt_buffer_without_dimensions_fails_closed() -> None:
    result = BlurScorer().score_image(_raw(b"definitely not an image"))

    assert result.blur_score == 1.0
    assert result.is_blurry
    assert result.method is BlurMethod.NONE
    assert "pixel decode failed" in result.error


def test_corrupt_buffer_with_known_dimensions_uses_file_size_estimate() -> None:
    # 10_000 bytes over 100x100 pixels is 1 byte per pixel.
    result = BlurScorer().score_image(_raw(b"\x00" * 10_000, width=100, height=100))

    assert result.method is BlurMethod.FALLBACK
    assert result.blur_score == 0.2
    assert not result.is_blurry


def test_file_size_strategy_flags_heavily_compressed_files() -> None:
    result = FileSizeStrategy(0.3)(_raw(b"\x00" * 1_000, width=100, height=100))

    assert result.blur_score == 0.7
    assert result.is_blurry
    assert result.quality_rating is QualityRating.VERY_POOR

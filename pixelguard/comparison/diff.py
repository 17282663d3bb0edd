"""Visual regression diff engine.

Pixels are compared in YIQ space after alpha-blending over white. The
squared, luma-weighted distance between two pixels is checked against
``MAX_YIQ_DELTA * threshold ** 2``; anything above it counts as a
mismatch. Small anti-aliasing shifts produce low deltas and fall under the
default threshold of 0.1.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import structlog

from pixelguard.comparison.images import RasterImage, encode_png

logger = structlog.get_logger(__name__)

DEFAULT_THRESHOLD = 0.1

# Largest possible YIQ delta between two colors
MAX_YIQ_DELTA = 35215.0

MISMATCH_COLOR = (255, 0, 0, 255)
BACKGROUND_FADE = 0.1


@dataclass(frozen=True)
class DiffResult:
    """Result of a visual comparison.

    ``match_percentage`` holds the share of mismatched pixels (0 means
    identical). A dimension mismatch reports 0 as well but is flagged by
    ``dimension_mismatch`` and must be treated as a failure.
    """

    mismatch_count: int
    total_pixels: int
    match_percentage: float
    width: int
    height: int
    diff_image: bytes | None = None
    dimension_mismatch: bool = False

    @property
    def passed(self) -> bool:
        return not self.dimension_mismatch and self.mismatch_count == 0


def _blend_over_white(pixels: np.ndarray) -> np.ndarray:
    rgb = pixels[..., :3].astype(np.float64)
    alpha = pixels[..., 3:4].astype(np.float64) / 255.0
    return 255.0 + (rgb - 255.0) * alpha


def _to_yiq(rgb: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    y = r * 0.29889531 + g * 0.58662247 + b * 0.11448223
    i = r * 0.59597799 - g * 0.27417610 - b * 0.32180189
    q = r * 0.21147017 - g * 0.52261711 + b * 0.31114694
    return y, i, q


def color_delta(baseline: np.ndarray, latest: np.ndarray) -> np.ndarray:
    """Per-pixel squared YIQ distance between two RGBA arrays of equal shape."""
    y1, i1, q1 = _to_yiq(_blend_over_white(baseline))
    y2, i2, q2 = _to_yiq(_blend_over_white(latest))
    dy = y1 - y2
    di = i1 - i2
    dq = q1 - q2
    return 0.5053 * dy * dy + 0.299 * di * di + 0.1957 * dq * dq


def _render_diff(baseline: np.ndarray, mask: np.ndarray) -> bytes:
    y, _, _ = _to_yiq(_blend_over_white(baseline))
    gray = np.clip(255.0 + (y - 255.0) * BACKGROUND_FADE, 0, 255).astype(np.uint8)
    out = np.empty(baseline.shape, dtype=np.uint8)
    out[..., 0] = gray
    out[..., 1] = gray
    out[..., 2] = gray
    out[..., 3] = 255
    out[mask] = MISMATCH_COLOR
    return encode_png(out)


def compare(
    baseline: RasterImage,
    latest: RasterImage,
    threshold: float = DEFAULT_THRESHOLD,
) -> DiffResult:
    """Compare two rasters pixel by pixel.

    Pure and deterministic: no I/O, no clock. The diff image is produced only
    when at least one pixel mismatches.
    """
    if not 0.0 <= threshold <= 1.0:
        msg = f"threshold must be within [0, 1], got {threshold}"
        raise ValueError(msg)

    if (baseline.width, baseline.height) != (latest.width, latest.height):
        logger.warning(
            "size_mismatch",
            baseline=(baseline.width, baseline.height),
            latest=(latest.width, latest.height),
        )
        return DiffResult(
            mismatch_count=baseline.total_pixels,
            total_pixels=baseline.total_pixels,
            match_percentage=0.0,
            width=latest.width,
            height=latest.height,
            dimension_mismatch=True,
        )

    total_pixels = baseline.total_pixels
    max_delta = MAX_YIQ_DELTA * threshold * threshold
    mask = color_delta(baseline.pixels, latest.pixels) > max_delta
    mismatch_count = int(np.count_nonzero(mask))
    match_percentage = 100.0 * mismatch_count / total_pixels if total_pixels > 0 else 0.0

    diff_image = _render_diff(baseline.pixels, mask) if mismatch_count > 0 else None

    logger.debug(
        "visual_diff_complete",
        mismatch_pct=f"{match_percentage:.4f}",
        threshold=threshold,
        changed_pixels=mismatch_count,
        total_pixels=total_pixels,
    )

    return DiffResult(
        mismatch_count=mismatch_count,
        total_pixels=total_pixels,
        match_percentage=match_percentage,
        width=baseline.width,
        height=baseline.height,
        diff_image=diff_image,
    )


class VisualDiff:
    """Compares baseline vs latest screenshots with a fixed threshold."""

    def __init__(self, threshold: float = DEFAULT_THRESHOLD) -> None:
        if not 0.0 <= threshold <= 1.0:
            msg = f"threshold must be within [0, 1], got {threshold}"
            raise ValueError(msg)
        self._threshold = threshold

    @property
    def threshold(self) -> float:
        return self._threshold

    def compare(self, baseline: RasterImage, latest: RasterImage) -> DiffResult:
        return compare(baseline, latest, self._threshold)

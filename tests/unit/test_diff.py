import io

import numpy as np
import pytest
from PIL import Image

from pixelguard.comparison.diff import (
    MISMATCH_COLOR,
    DiffResult,
    VisualDiff,
    color_delta,
    compare,
)
from pixelguard.comparison.images import RasterImage

RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)


def _raster(width: int, height: int, color: tuple[int, int, int, int]) -> RasterImage:
    return RasterImage.from_pil(Image.new("RGBA", (width, height), color))


def _with_pixel(
    base: RasterImage, x: int, y: int, color: tuple[int, int, int, int]
) -> RasterImage:
    pixels = base.pixels.copy()
    pixels[y, x] = color
    return RasterImage(width=base.width, height=base.height, pixels=pixels)


@pytest.mark.unit
class TestCompare:
    @pytest.fixture()
    def differ(self) -> VisualDiff:
        return VisualDiff(threshold=0.1)

    def test_identical_images_have_no_mismatch(self, differ: VisualDiff) -> None:
        red = _raster(100, 100, RED)
        result = differ.compare(red, red)
        assert isinstance(result, DiffResult)
        assert result.mismatch_count == 0
        assert result.match_percentage == 0.0
        assert result.passed is True
        assert result.diff_image is None

    @pytest.mark.parametrize("threshold", [0.0, 0.1, 0.5, 1.0])
    def test_identity_holds_for_any_threshold(self, threshold: float) -> None:
        pixels = np.arange(8 * 8 * 4, dtype=np.uint8).reshape(8, 8, 4)
        image = RasterImage(width=8, height=8, pixels=pixels)
        assert compare(image, image, threshold).match_percentage == 0.0

    def test_completely_different_images(self, differ: VisualDiff) -> None:
        result = differ.compare(_raster(10, 10, RED), _raster(10, 10, BLUE))
        assert result.mismatch_count == 100
        assert result.total_pixels == 100
        assert result.match_percentage == 100.0
        assert result.passed is False

    def test_one_pixel_out_of_sixteen(self, differ: VisualDiff) -> None:
        baseline = _raster(4, 4, RED)
        latest = _with_pixel(baseline, 2, 1, BLUE)
        result = differ.compare(baseline, latest)
        assert result.mismatch_count == 1
        assert result.total_pixels == 16
        assert result.match_percentage == pytest.approx(6.25)

    def test_diff_image_highlights_mismatched_pixel(self, differ: VisualDiff) -> None:
        baseline = _raster(4, 4, RED)
        latest = _with_pixel(baseline, 2, 1, BLUE)
        result = differ.compare(baseline, latest)
        assert result.diff_image is not None
        diff = Image.open(io.BytesIO(result.diff_image))
        assert diff.format == "PNG"
        assert diff.size == (4, 4)
        assert diff.convert("RGBA").getpixel((2, 1)) == MISMATCH_COLOR
        assert diff.convert("RGBA").getpixel((0, 0)) != MISMATCH_COLOR

    def test_slight_color_shift_below_threshold(self, differ: VisualDiff) -> None:
        baseline = _raster(10, 10, (100, 100, 100, 255))
        latest = _raster(10, 10, (103, 100, 100, 255))
        assert differ.compare(baseline, latest).mismatch_count == 0

    def test_zero_threshold_flags_any_change(self) -> None:
        baseline = _raster(10, 10, (100, 100, 100, 255))
        latest = _raster(10, 10, (103, 100, 100, 255))
        assert compare(baseline, latest, threshold=0.0).mismatch_count == 100

    def test_transparent_pixels_compare_by_blended_color(self, differ: VisualDiff) -> None:
        baseline = _raster(4, 4, (255, 0, 0, 0))
        latest = _raster(4, 4, (0, 0, 255, 0))
        assert differ.compare(baseline, latest).mismatch_count == 0

    def test_dimension_mismatch_short_circuits(self, differ: VisualDiff) -> None:
        result = differ.compare(_raster(4, 4, RED), _raster(8, 8, RED))
        assert result.dimension_mismatch is True
        assert result.match_percentage == 0.0
        assert result.diff_image is None
        assert result.passed is False

    def test_deterministic_output(self, differ: VisualDiff) -> None:
        baseline = _raster(16, 16, RED)
        latest = _with_pixel(_with_pixel(baseline, 0, 0, BLUE), 15, 15, BLUE)
        first = differ.compare(baseline, latest)
        second = differ.compare(baseline, latest)
        assert first.match_percentage == second.match_percentage
        assert first.diff_image == second.diff_image

    @pytest.mark.parametrize("threshold", [-0.1, 1.5])
    def test_rejects_threshold_out_of_range(self, threshold: float) -> None:
        with pytest.raises(ValueError, match="threshold"):
            VisualDiff(threshold=threshold)
        with pytest.raises(ValueError, match="threshold"):
            compare(_raster(2, 2, RED), _raster(2, 2, RED), threshold)


@pytest.mark.unit
class TestColorDelta:
    def test_black_and_white_differ_only_in_luma(self) -> None:
        black = np.array([[[0, 0, 0, 255]]], dtype=np.uint8)
        white = np.array([[[255, 255, 255, 255]]], dtype=np.uint8)
        assert float(color_delta(black, white)[0, 0]) == pytest.approx(0.5053 * 255**2, rel=1e-3)

    def test_symmetric(self) -> None:
        a = np.array([[[10, 200, 30, 255]]], dtype=np.uint8)
        b = np.array([[[90, 20, 130, 128]]], dtype=np.uint8)
        assert color_delta(a, b)[0, 0] == color_delta(b, a)[0, 0]

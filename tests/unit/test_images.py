import io

import pytest
from PIL import Image

from pixelguard.comparison.images import RasterImage
from pixelguard.exceptions import InvalidImageError


def _encode(image: Image.Image, fmt: str) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.mark.unit
class TestRasterImage:
    def test_decodes_png_to_rgba(self) -> None:
        data = _encode(Image.new("RGB", (3, 2), (10, 20, 30)), "PNG")
        raster = RasterImage.from_png(data)
        assert (raster.width, raster.height) == (3, 2)
        assert raster.pixels.shape == (2, 3, 4)
        assert tuple(raster.pixels[0, 0]) == (10, 20, 30, 255)
        assert raster.total_pixels == 6

    def test_rejects_garbage(self) -> None:
        with pytest.raises(InvalidImageError):
            RasterImage.from_png(b"definitely not an image")

    def test_rejects_empty(self) -> None:
        with pytest.raises(InvalidImageError, match="empty"):
            RasterImage.from_png(b"")

    def test_rejects_other_raster_formats(self) -> None:
        data = _encode(Image.new("RGB", (4, 4), (255, 0, 0)), "JPEG")
        with pytest.raises(InvalidImageError, match="PNG"):
            RasterImage.from_png(data)

    def test_to_png_round_trips_pixels(self) -> None:
        raster = RasterImage.from_pil(Image.new("RGBA", (5, 5), (1, 2, 3, 4)))
        decoded = RasterImage.from_png(raster.to_png())
        assert (decoded.pixels == raster.pixels).all()

"""PNG decoding into RGBA raster buffers."""

from __future__ import annotations

import io
from dataclasses import dataclass

import numpy as np
from PIL import Image, UnidentifiedImageError

from pixelguard.exceptions import InvalidImageError

STORAGE_FORMAT = "PNG"


@dataclass(frozen=True, eq=False)
class RasterImage:
    """An RGBA raster: ``pixels`` has shape ``(height, width, 4)`` and dtype uint8."""

    width: int
    height: int
    pixels: np.ndarray

    @property
    def total_pixels(self) -> int:
        return self.width * self.height

    @classmethod
    def from_pil(cls, image: Image.Image) -> RasterImage:
        rgba = image.convert("RGBA")
        pixels = np.asarray(rgba, dtype=np.uint8)
        return cls(width=rgba.width, height=rgba.height, pixels=pixels)

    @classmethod
    def from_png(cls, data: bytes) -> RasterImage:
        """Decode PNG bytes, raising InvalidImageError for anything else."""
        if not data:
            raise InvalidImageError("Image data is empty")
        try:
            with Image.open(io.BytesIO(data)) as image:
                if image.format != STORAGE_FORMAT:
                    raise InvalidImageError(
                        f"Expected {STORAGE_FORMAT} image data, got {image.format or 'unknown'}"
                    )
                image.load()
                return cls.from_pil(image)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise InvalidImageError(f"Cannot decode image data: {e}") from e

    def to_png(self) -> bytes:
        return encode_png(self.pixels)


def encode_png(pixels: np.ndarray) -> bytes:
    """Encode an RGBA array as PNG with fixed encoder settings."""
    buffer = io.BytesIO()
    Image.fromarray(np.ascontiguousarray(pixels, dtype=np.uint8)).save(
        buffer, format=STORAGE_FORMAT, compress_level=6, optimize=False
    )
    return buffer.getvalue()

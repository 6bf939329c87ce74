"""
Image encoding helpers built on Pillow.

Converts engine pixel buffers and files produced by generated programs
into the ImageResult served to clients.
"""

import io
import logging
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from .base import PixelBuffer, RenderEngineError

logger = logging.getLogger(__name__)

FORMAT_MIME_TYPES = {
    "png": "image/png",
    "jpeg": "image/jpeg",
}

# Formats served to clients as-is
PASSTHROUGH_FORMATS = {"PNG": "image/png", "JPEG": "image/jpeg"}


@dataclass(frozen=True)
class ImageResult:
    """Encoded image bytes plus their MIME type."""

    data: bytes
    mime_type: str

    def __post_init__(self):
        if not self.data:
            raise ValueError("ImageResult requires non-empty data")


def encode_image(buffer: PixelBuffer, fmt: str = "png") -> ImageResult:
    """
    Encode raw RGB pixels.

    Args:
        buffer: Pixels produced by a render engine
        fmt: "png" or "jpeg"

    Returns:
        ImageResult with the encoded bytes
    """
    fmt = fmt.lower()
    if fmt not in FORMAT_MIME_TYPES:
        raise ValueError(f"Unsupported output format '{fmt}'")

    image = Image.frombytes("RGB", (buffer.width, buffer.height), buffer.data)
    return _save(image, fmt)


def decode_pixels(data: bytes) -> PixelBuffer:
    """Decode any Pillow-readable image into an RGB PixelBuffer."""
    image = _open(data)
    rgb = image.convert("RGB")
    return PixelBuffer(width=rgb.width, height=rgb.height, data=rgb.tobytes())


def normalize_image(data: bytes, fmt: str = "png") -> ImageResult:
    """
    Turn image bytes of any Pillow-readable format into an ImageResult.

    PNG and JPEG pass through untouched; anything else (e.g. PPM written
    by a generated program) is re-encoded to ``fmt``.
    """
    image = _open(data)
    mime = PASSTHROUGH_FORMATS.get(image.format or "")
    if mime is not None:
        return ImageResult(data=data, mime_type=mime)

    logger.debug(f"Re-encoding {image.format} image as {fmt}")
    return _save(image.convert("RGB"), fmt.lower())


def load_image_file(path: Path, fmt: str = "png") -> ImageResult:
    """Read an image file from disk and normalize it."""
    return normalize_image(Path(path).read_bytes(), fmt)


def _open(data: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise RenderEngineError(f"Unreadable image data: {e}") from e
    return image


def _save(image: Image.Image, fmt: str) -> ImageResult:
    out = io.BytesIO()
    if fmt == "jpeg":
        image.save(out, format="JPEG", quality=92)
    else:
        image.save(out, format="PNG")
    return ImageResult(data=out.getvalue(), mime_type=FORMAT_MIME_TYPES[fmt])

"""Encoding of uploaded profile photos."""

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO

from PIL import Image, ImageOps, UnidentifiedImageError

from .config import PhotoConfig
from .exceptions import (
    PhotoDimensionsError,
    PhotoEncodingError,
    PhotoTooLargeError,
)

__all__ = ["EncodedPhoto", "encode_photo"]


@dataclass(frozen=True, slots=True)
class EncodedPhoto:
    """Profile photo ready to be stored in the directory."""

    thumbnail: bytes
    """Square JPEG thumbnail."""

    original: bytes
    """Full-size photo, recompressed as JPEG if it was too large."""


def _to_jpeg(image: Image.Image, quality: int) -> bytes:
    output = BytesIO()
    image.save(output, format="JPEG", quality=quality, optimize=True)
    return output.getvalue()


def encode_photo(data: bytes, config: PhotoConfig) -> EncodedPhoto:
    """Convert an uploaded image into the photos stored in the directory.

    The thumbnail is cropped to a centered square and resized. If the result
    is too large at the normal quality, it is encoded once more at a lower
    quality.

    Parameters
    ----------
    data
        Uploaded image in any format Pillow can read.
    config
        Size and quality limits.

    Returns
    -------
    EncodedPhoto
        Encoded thumbnail and full-size photo.

    Raises
    ------
    PhotoDimensionsError
        Raised if the image has more pixels than ``max_pixels``.
    PhotoEncodingError
        Raised if the image could not be decoded.
    PhotoTooLargeError
        Raised if the thumbnail is still too large at the fallback quality.
    """
    try:
        with Image.open(BytesIO(data)) as image:
            width, height = image.size
            if width * height > config.max_pixels:
                msg = (
                    f"Image is {width}x{height} pixels, more than the limit"
                    f" of {config.max_pixels}"
                )
                raise PhotoDimensionsError(msg)
            image.load()
            image = ImageOps.exif_transpose(image)
            if image.mode != "RGB":
                image = image.convert("RGB")
    except (
        Image.DecompressionBombError,
        UnidentifiedImageError,
        OSError,
        ValueError,
    ) as e:
        raise PhotoEncodingError(f"Cannot decode image: {e!s}") from e

    size = (config.thumbnail_size, config.thumbnail_size)
    thumbnail = ImageOps.fit(image, size, Image.Resampling.LANCZOS)
    encoded = _to_jpeg(thumbnail, config.thumbnail_quality)
    if len(encoded) > config.max_thumbnail_bytes:
        encoded = _to_jpeg(thumbnail, config.fallback_quality)
    if len(encoded) > config.max_thumbnail_bytes:
        msg = (
            f"Thumbnail is {len(encoded)} bytes, more than the limit of"
            f" {config.max_thumbnail_bytes}"
        )
        raise PhotoTooLargeError(msg)

    original = data
    if len(data) > config.max_original_bytes:
        original = _to_jpeg(image, config.original_quality)
    return EncodedPhoto(thumbnail=encoded, original=original)

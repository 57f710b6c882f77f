"""Tests for profile photo encoding."""

from __future__ import annotations

from io import BytesIO

import pytest
from PIL import Image

from idportal.config import PhotoConfig
from idportal.exceptions import (
    PhotoDimensionsError,
    PhotoEncodingError,
    PhotoTooLargeError,
)
from idportal.images import encode_photo

from .support.images import make_png_header


def make_image(size: tuple[int, int], mode: str = "RGB") -> bytes:
    output = BytesIO()
    Image.new(mode, size).save(output, format="PNG")
    return output.getvalue()


def test_encode_photo() -> None:
    config = PhotoConfig()
    data = make_image((800, 400))

    photo = encode_photo(data, config)

    with Image.open(BytesIO(photo.thumbnail)) as image:
        assert image.format == "JPEG"
        assert image.mode == "RGB"
        assert image.size == (96, 96)
    assert len(photo.thumbnail) <= config.max_thumbnail_bytes
    assert photo.original == data


def test_encode_transparent() -> None:
    photo = encode_photo(make_image((120, 160), "RGBA"), PhotoConfig())
    with Image.open(BytesIO(photo.thumbnail)) as image:
        assert image.mode == "RGB"
        assert image.size == (96, 96)


def test_recompress_original() -> None:
    config = PhotoConfig(max_original_bytes=100, thumbnail_size=32)
    data = make_image((300, 300))

    photo = encode_photo(data, config)

    with Image.open(BytesIO(photo.original)) as image:
        assert image.format == "JPEG"
        assert image.size == (300, 300)
    with Image.open(BytesIO(photo.thumbnail)) as image:
        assert image.size == (32, 32)


def test_invalid_image() -> None:
    with pytest.raises(PhotoEncodingError):
        encode_photo(b"not an image", PhotoConfig())


def test_too_large() -> None:
    config = PhotoConfig(max_thumbnail_bytes=10)
    with pytest.raises(PhotoTooLargeError):
        encode_photo(make_image((100, 100)), config)


def test_too_many_pixels() -> None:
    config = PhotoConfig(max_pixels=100 * 100)
    with pytest.raises(PhotoDimensionsError):
        encode_photo(make_image((101, 100)), config)
    encode_photo(make_image((100, 100)), config)

    # The size is checked from the header before any pixels are decoded.
    with pytest.raises(PhotoDimensionsError):
        encode_photo(make_png_header(8000, 7000), PhotoConfig())


def test_decompression_bomb() -> None:
    data = make_png_header(15000, 15000)
    config = PhotoConfig(max_pixels=15000 * 15000)
    with pytest.raises(PhotoEncodingError):
        encode_photo(data, config)

"""Tests for upload image preparation."""

import io

import pytest
from PIL import Image

from restyle.services.imaging import ensure_decodable, fit_within, prepare_upload_image


@pytest.mark.parametrize(
    "size, expected",
    [
        ((800, 600), (800, 600)),
        ((1024, 1024), (1024, 1024)),
        ((4032, 3024), (1024, 768)),
        ((3000, 6000), (512, 1024)),
        ((5000, 2), (1024, 1)),
    ],
)
def test_fit_within(size, expected):
    assert fit_within(size, 1024) == expected


def test_prepare_downscales_and_converts_to_jpeg(png_bytes):
    result = prepare_upload_image(png_bytes)

    with Image.open(io.BytesIO(result)) as img:
        assert img.format == "JPEG"
        assert img.mode == "RGB"
        assert img.size == (1024, 512)


def test_prepare_keeps_small_images_at_size(jpeg_bytes):
    with Image.open(io.BytesIO(prepare_upload_image(jpeg_bytes))) as img:
        assert img.size == (64, 48)


def test_prepare_rejects_garbage():
    with pytest.raises(ValueError):
        prepare_upload_image(b"0123456789")


def test_ensure_decodable(jpeg_bytes):
    assert ensure_decodable(jpeg_bytes) == (64, 48)

    with pytest.raises(ValueError):
        ensure_decodable(b"<html></html>")

"""Pillow helpers for preparing uploads and checking downloaded images."""

import io

from PIL import Image, UnidentifiedImageError


def fit_within(size: tuple[int, int], max_dimension: int) -> tuple[int, int]:
    """Scale (width, height) down so neither side exceeds max_dimension.

    Sizes already within the bound are returned unchanged; images are never
    upscaled. Aspect ratio is preserved and each side is at least 1 pixel.
    """
    width, height = size
    if width <= max_dimension and height <= max_dimension:
        return size

    scale = max_dimension / max(width, height)
    return max(1, round(width * scale)), max(1, round(height * scale))


def prepare_upload_image(data: bytes, max_dimension: int = 1024, quality: int = 70) -> bytes:
    """Downscale (if needed) and re-encode an image as JPEG.

    Args:
        data: Encoded source image (any format Pillow can read)
        max_dimension: Longest allowed side in pixels
        quality: JPEG quality factor (1-95)

    Returns:
        JPEG bytes

    Raises:
        ValueError: If the bytes are not a decodable image or cannot be encoded
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            target = fit_within(img.size, max_dimension)
            prepared = img if target == img.size else img.resize(target, Image.LANCZOS)

            # JPEG has no alpha channel or palette
            if prepared.mode != "RGB":
                prepared = prepared.convert("RGB")

            buffer = io.BytesIO()
            prepared.save(buffer, "JPEG", quality=quality)
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Could not encode image as JPEG: {e}") from e

    return buffer.getvalue()


def ensure_decodable(data: bytes) -> tuple[int, int]:
    """Verify that bytes hold a readable image.

    Returns:
        (width, height) of the image

    Raises:
        ValueError: If Pillow cannot identify or verify the image
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            size = img.size
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ValueError(f"Not a decodable image: {e}") from e

    return size

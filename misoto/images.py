"""Image resizing and JPEG compression.

Photos go out at most twice: once to storage at upload size and once to the
completion endpoint at processing size. Both are capped in pixels and bytes.
"""

import asyncio
from io import BytesIO

from PIL import Image, UnidentifiedImageError


PROCESSING_DIMENSION = 1600
UPLOAD_DIMENSION = 2048


class InvalidImage(Exception):
    pass


def open_image(data: bytes) -> Image.Image:
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImage("Invalid image") from e
    if image.mode in ("RGBA", "LA", "P"):
        image = image.convert("RGBA")
        background = Image.new("RGB", image.size, (255, 255, 255))
        background.paste(image, mask=image.split()[-1])
        return background
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def resize(image: Image.Image, max_dimension: int) -> Image.Image:
    """Scale down so the longer side fits, keeping the aspect ratio."""
    width, height = image.size
    if max(width, height) <= max_dimension:
        return image
    ratio = max_dimension / max(width, height)
    size = (max(1, round(width * ratio)), max(1, round(height * ratio)))
    return image.resize(size, Image.Resampling.LANCZOS)


def _jpeg(image: Image.Image, quality: float) -> bytes:
    buffer = BytesIO()
    image.save(buffer, format="JPEG", quality=max(1, int(quality * 100)), optimize=True)
    return buffer.getvalue()


def compress(image: Image.Image, quality: float = 0.8, max_file_size_kb: int = 500) -> bytes:
    """Lower the JPEG quality in steps of 0.1 until the file fits."""
    data = _jpeg(image, quality)
    while len(data) > max_file_size_kb * 1024 and quality > 0.1:
        quality = round(quality - 0.1, 2)
        data = _jpeg(image, quality)
    return data


def prepare_for_upload(data: bytes) -> bytes:
    return compress(resize(open_image(data), UPLOAD_DIMENSION), 0.8, 500)


def prepare_for_vision(data: bytes) -> bytes:
    return compress(resize(open_image(data), PROCESSING_DIMENSION), 0.75, 800)


async def aprepare_for_upload(data: bytes) -> bytes:
    return await asyncio.to_thread(prepare_for_upload, data)


async def aprepare_for_vision(data: bytes) -> bytes:
    return await asyncio.to_thread(prepare_for_vision, data)

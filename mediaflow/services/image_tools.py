# services/image_tools.py
"""
Image helpers shared by the annotator and the staging upload.

Resizing only happens when the image is not already at the target size;
re-encoding an image that already fits only loses quality.
"""
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image, ImageOps

from mediaflow.core.config import settings
from mediaflow.core.logger import logger


def target_size() -> Tuple[int, int]:
    return settings.TARGET_IMAGE_WIDTH, settings.TARGET_IMAGE_HEIGHT


def needs_resize(image: Image.Image, size: Tuple[int, int]) -> bool:
    return image.size != tuple(size)


def fit_image(image: Image.Image, size: Optional[Tuple[int, int]] = None) -> Image.Image:
    """
    Scale and center-crop `image` to exactly `size`. The same object is
    returned when it already has that size.
    """
    size = tuple(size or target_size())
    if not needs_resize(image, size):
        return image
    return ImageOps.fit(image, size, method=Image.Resampling.LANCZOS)


def normalize_image(source: Path, destination: Path, size: Optional[Tuple[int, int]] = None) -> Path:
    """
    Write `source` to `destination` at `size`. An image already at that size
    is copied byte for byte instead of being decoded and re-encoded.
    """
    source = Path(source)
    destination = Path(destination)
    size = tuple(size or target_size())
    destination.parent.mkdir(parents=True, exist_ok=True)

    with Image.open(source) as img:
        if not needs_resize(img, size):
            logger.debug(f"{source} is already {size[0]}x{size[1]}; leaving it unchanged")
            if source.resolve() != destination.resolve():
                destination.write_bytes(source.read_bytes())
            return destination
        resized = fit_image(img, size)
        resized.save(destination, format=img.format)

    logger.debug(f"Resized {source} to {size[0]}x{size[1]} -> {destination}")
    return destination

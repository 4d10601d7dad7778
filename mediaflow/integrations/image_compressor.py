# integrations/image_compressor.py
from pathlib import Path
from typing import Optional

from PIL import Image

from mediaflow.core.config import settings
from mediaflow.core.logger import logger

JPEG_SUFFIXES = (".jpg", ".jpeg")
PNG_SUFFIXES = (".png",)


class PillowCompressor:
    """
    Re-encodes every image below a directory in place: JPEGs at `quality`,
    PNGs with maximum deflate compression. Other files are left alone.
    """

    def __init__(self, quality: Optional[int] = None):
        self.quality = quality or settings.COMPRESSION_QUALITY

    def compress(self, directory: Path) -> None:
        directory = Path(directory)
        count = 0
        saved = 0
        for path in sorted(p for p in directory.rglob("*") if p.is_file()):
            suffix = path.suffix.lower()
            if suffix not in JPEG_SUFFIXES + PNG_SUFFIXES:
                continue
            before = path.stat().st_size
            with Image.open(path) as img:
                img.load()
                if suffix in JPEG_SUFFIXES:
                    img.convert("RGB").save(path, format="JPEG", quality=self.quality, optimize=True)
                else:
                    img.save(path, format="PNG", optimize=True)
            count += 1
            saved += before - path.stat().st_size

        logger.info(f"Compressed {count} images in {directory} ({saved} bytes saved)")

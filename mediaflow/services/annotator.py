"""
Face annotation transform for the batch pipeline.

Each annotated copy is the source image fitted to the target size with the
four face attributes written in the top-left corner and the face's
bounding box outlined.
"""

from pathlib import Path
from typing import Optional, Tuple

from PIL import Image, ImageDraw, ImageFont

from mediaflow.core.config import settings
from mediaflow.core.logger import logger
from mediaflow.schemas.batch_models import AnalysisResult
from mediaflow.services.image_tools import fit_image

LABEL_COLOR = (255, 0, 0)


class FaceAnnotator:
    required_attributes = ("gender", "age_range", "beard", "smile")

    labels = (
        ("gender", "Gender"),
        ("age_range", "Age"),
        ("beard", "Beard"),
        ("smile", "Smile"),
    )

    def __init__(
        self,
        size: Optional[Tuple[int, int]] = None,
        font_path: Optional[str] = None,
        font_size: Optional[int] = None,
        line_spacing: Optional[int] = None
    ):
        self.size = tuple(size or (settings.TARGET_IMAGE_WIDTH, settings.TARGET_IMAGE_HEIGHT))
        self.font_path = font_path or settings.ANNOTATION_FONT_PATH
        self.font_size = font_size or settings.ANNOTATION_FONT_SIZE
        self.line_spacing = line_spacing or settings.ANNOTATION_LINE_SPACING
        self._font = None

    @property
    def font(self):
        if self._font is None:
            if self.font_path:
                self._font = ImageFont.truetype(self.font_path, self.font_size)
            else:
                self._font = ImageFont.load_default()
        return self._font

    def __call__(self, source: Path, result: AnalysisResult, destination: Path) -> Path:
        destination = Path(destination)
        with Image.open(source) as img:
            output_format = img.format
            canvas = fit_image(img.convert("RGB"), self.size)

        draw = ImageDraw.Draw(canvas)
        for line, (name, label) in enumerate(self.labels):
            draw.text(
                (0, line * self.line_spacing),
                f"{label}: {result.value_of(name)}",
                fill=LABEL_COLOR,
                font=self.font
            )

        if result.region is not None:
            if not result.region.is_within_unit():
                logger.warning(f"Bounding box for {source} falls outside the image; clamping")
            x0, y0, x1, y1 = result.region.to_pixels(*canvas.size)
            if x1 > x0 and y1 > y0:
                draw.rectangle((x0, y0, x1, y1), outline=LABEL_COLOR, width=3)

        canvas.save(destination, format=output_format or "JPEG")
        logger.debug(f"Annotated {source} -> {destination}")
        return destination

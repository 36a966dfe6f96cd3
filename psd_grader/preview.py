from __future__ import annotations

import base64
import io
import logging
from typing import Any

from PIL import Image, ImageDraw

logger = logging.getLogger(__name__)

THUMBNAIL_SIZE = 100
PLACEHOLDER_BACKGROUND = "#f0f0f0"
PLACEHOLDER_COLORS = {
    "CMYK": "#00BCD4",
    "Grayscale": "#757575",
}
PLACEHOLDER_DEFAULT_COLOR = "#4CAF50"
PLACEHOLDER_LABELS = {"CMYK": "CMYK", "Grayscale": "GRAY"}


def _png_data_url(image: Image.Image) -> str:
    output = io.BytesIO()
    image.save(output, format="PNG")
    return "data:image/png;base64," + base64.b64encode(output.getvalue()).decode("ascii")


def _centered_text(draw: ImageDraw.ImageDraw, label: str, center_y: int) -> None:
    left, top, right, bottom = draw.textbbox((0, 0), label)
    x = (THUMBNAIL_SIZE - (right - left)) / 2
    y = center_y - (bottom - top) / 2
    draw.text((x, y), label, fill="white")


def thumbnail_data_url(image: Any, *, max_dimension: int = THUMBNAIL_SIZE) -> str | None:
    """Scale a decoded composite or embedded thumbnail down to a PNG data URL."""

    if not isinstance(image, Image.Image):
        return None
    try:
        preview = image.copy()
        if preview.mode not in ("RGB", "RGBA"):
            preview = preview.convert("RGBA" if "A" in preview.getbands() else "RGB")
        preview.thumbnail((max_dimension, max_dimension))
        return _png_data_url(preview)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Thumbnail generation failed: %s", exc)
        return None


def placeholder_thumbnail(width: int, height: int, color_mode: str) -> str | None:
    """Draw a mode-coloured rectangle with the document's aspect ratio."""

    if width <= 0 or height <= 0:
        return None
    try:
        canvas = Image.new("RGB", (THUMBNAIL_SIZE, THUMBNAIL_SIZE), PLACEHOLDER_BACKGROUND)
        draw = ImageDraw.Draw(canvas)

        scale = min(80 / width, 80 / height)
        rect_width = width * scale
        rect_height = height * scale
        left = (THUMBNAIL_SIZE - rect_width) / 2
        top = (THUMBNAIL_SIZE - rect_height) / 2
        draw.rectangle(
            [left, top, left + rect_width, top + rect_height],
            fill=PLACEHOLDER_COLORS.get(color_mode, PLACEHOLDER_DEFAULT_COLOR),
        )

        _centered_text(draw, PLACEHOLDER_LABELS.get(color_mode, "RGB"), 50)
        _centered_text(draw, f"{width}x{height}", 65)
        return _png_data_url(canvas)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Placeholder thumbnail generation failed: %s", exc)
        return None

"""
Watermark and metadata stamping.

The watermark is drawn on a one-page reportlab overlay sized to each page and
merged onto that page with pypdf.
"""

from __future__ import annotations

import io
import logging
import time
from dataclasses import dataclass
from typing import Mapping, Optional

from pypdf import PdfReader, PdfWriter
from reportlab.pdfgen import canvas

from .exceptions import MetadataError, ValidationError, WatermarkError
from .utils import sanitize_string

logger = logging.getLogger(__name__)

DEFAULT_WATERMARK_TEXT = "For Friend Lending Platform Use Only"
WATERMARK_POSITIONS = ("center", "diagonal")
WATERMARK_FONT = "Helvetica"
WATERMARK_FONT_SIZE = 60
WATERMARK_COLOR = (0.5, 0.5, 0.5)
DIAGONAL_ANGLE = 45

METADATA_FIELDS = ("title", "author", "subject", "creator", "producer")


@dataclass(frozen=True)
class WatermarkOptions:
    text: str = DEFAULT_WATERMARK_TEXT
    opacity: float = 0.3
    position: str = "diagonal"
    date: Optional[str] = None

    def validate(self) -> None:
        errors = []
        if not 0 <= self.opacity <= 1:
            errors.append("watermarkConfig.opacity must be between 0 and 1")
        if self.position not in WATERMARK_POSITIONS:
            errors.append('watermarkConfig.position must be "center" or "diagonal"')
        if errors:
            raise ValidationError("Invalid watermark options", details=errors)

    @property
    def stamp_text(self) -> str:
        text = sanitize_string(self.text) or DEFAULT_WATERMARK_TEXT
        return f"{text} - {self.date}" if self.date else text


def _build_overlay(width: float, height: float, options: WatermarkOptions) -> PdfReader:
    text = options.stamp_text
    x = width / 2 - (len(text) * WATERMARK_FONT_SIZE) / 4
    y = height / 2

    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=(width, height))
    c.setFont(WATERMARK_FONT, WATERMARK_FONT_SIZE)
    c.setFillColorRGB(*WATERMARK_COLOR)
    c.setFillAlpha(options.opacity)

    if options.position == "diagonal":
        c.saveState()
        c.translate(x, y)
        c.rotate(DIAGONAL_ANGLE)
        c.drawString(0, 0, text)
        c.restoreState()
    else:
        c.drawString(x, y, text)

    c.save()
    buffer.seek(0)
    return PdfReader(buffer)


def add_watermark(pdf_bytes: bytes, options: Optional[WatermarkOptions] = None) -> bytes:
    """
    Stamp the watermark text on every page of ``pdf_bytes``.

    Args:
        pdf_bytes: The source document
        options: Text, opacity, position and optional date; defaults apply when omitted

    Returns:
        The stamped document

    Raises:
        ValidationError: If opacity or position are out of range
        WatermarkError: If the document cannot be parsed or written
    """
    options = options or WatermarkOptions()
    options.validate()
    started = time.perf_counter()

    logger.info(f"Adding watermark '{options.stamp_text}' (opacity={options.opacity}, position={options.position})")

    try:
        reader = PdfReader(io.BytesIO(pdf_bytes))
        writer = PdfWriter()

        for page in reader.pages:
            width = float(page.mediabox.width)
            height = float(page.mediabox.height)
            overlay = _build_overlay(width, height, options)
            page.merge_page(overlay.pages[0])
            writer.add_page(page)

        out = io.BytesIO()
        writer.write(out)
    except Exception as exc:  # noqa: BLE001
        logger.error(f"Failed to add watermark: {exc}", exc_info=True)
        raise WatermarkError("Failed to add watermark to PDF") from exc

    elapsed_ms = int((time.perf_counter() - started) * 1000)
    logger.info(f"Watermark added to {len(reader.pages)} pages in {elapsed_ms}ms")
    return out.getvalue()


def add_metadata(pdf_bytes: bytes, metadata: Mapping[str, Optional[str]]) -> bytes:
    """Set the document information fields that are present in ``metadata``."""
    entries = {
        f"/{name.capitalize()}": sanitize_string(metadata[name])
        for name in METADATA_FIELDS
        if metadata.get(name)
    }
    if not entries:
        return pdf_bytes

    try:
        reader = PdfReader(io.BytesIO(pdf_bytes))
        writer = PdfWriter()
        for page in reader.pages:
            writer.add_page(page)
        if reader.metadata:
            writer.add_metadata(dict(reader.metadata))
        writer.add_metadata(entries)

        out = io.BytesIO()
        writer.write(out)
    except Exception as exc:  # noqa: BLE001
        logger.error(f"Failed to add metadata: {exc}", exc_info=True)
        raise MetadataError("Failed to add metadata to PDF") from exc

    return out.getvalue()

"""
Text watermark overlay for PDF documents.

Each page gets its own overlay rendered with reportlab at the page's size,
which is then merged on top of the existing page content with pypdf.
"""
from io import BytesIO
from pathlib import Path
from typing import Optional, Tuple
import logging
import re

from pypdf import PdfReader, PdfWriter
from reportlab.lib import colors
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen import canvas

from pdf_functions.core.config import settings
from pdf_functions.core.errors import MissingParameter
from pdf_functions.schemas.watermark import WatermarkSpec
from pdf_functions.services.pdf_service import open_pdf

logger = logging.getLogger(__name__)

DEFAULT_FONT = "Helvetica"
DEFAULT_COLOR = (0.0, 0.0, 1.0)

# Standard PDF families; Symbol and ZapfDingbats cannot render plain text
FONT_FAMILIES = {
    "helvetica": "Helvetica",
    "arial": "Helvetica",
    "sans": "Helvetica",
    "sans serif": "Helvetica",
    "times": "Times",
    "times new roman": "Times",
    "serif": "Times",
    "courier": "Courier",
    "courier new": "Courier",
    "monospace": "Courier",
}

FONT_STYLES = {
    "": "",
    "regular": "",
    "normal": "",
    "roman": "",
    "bold": "Bold",
    "italic": "Italic",
    "oblique": "Italic",
    "bold italic": "BoldItalic",
    "bolditalic": "BoldItalic",
    "bold oblique": "BoldItalic",
    "boldoblique": "BoldItalic",
}

_HEX_COLOR = re.compile(r"^#?([0-9a-fA-F]{6})$")


def _standard_font_name(family: str, style: str) -> str:
    if family == "Times":
        return f"Times-{style or 'Roman'}"
    style = style.replace("Italic", "Oblique")
    return f"{family}-{style}" if style else family


def resolve_font(name: Optional[str]) -> str:
    """Map a user supplied family/style, e.g. ``"Arial Bold"``, to a standard PDF font."""
    if not name or not name.strip():
        return DEFAULT_FONT

    wanted = " ".join(name.lower().replace("_", " ").replace("-", " ").split())
    for family in sorted(FONT_FAMILIES, key=len, reverse=True):
        if wanted == family or wanted.startswith(family + " "):
            style = wanted[len(family):].strip()
            if style in FONT_STYLES:
                return _standard_font_name(FONT_FAMILIES[family], FONT_STYLES[style])
            break

    logger.warning("Unsupported watermark font %r, falling back to %s", name, DEFAULT_FONT)
    return DEFAULT_FONT


def resolve_color(value: Optional[str]) -> Tuple[float, float, float]:
    """Parse a named color or ``#RRGGBB``/``RRGGBB`` hex string to RGB floats."""
    if value is None or not value.strip():
        return _default_color()

    match = _HEX_COLOR.match(value.strip())
    if match:
        hex_color = match.group(1)
        return (int(hex_color[0:2], 16) / 255.0,
                int(hex_color[2:4], 16) / 255.0,
                int(hex_color[4:6], 16) / 255.0)

    named = colors.getAllNamedColors().get(value.strip().lower().replace(" ", ""))
    if named is not None:
        return (float(named.red), float(named.green), float(named.blue))

    logger.warning("Unsupported watermark color %r, falling back to default", value)
    return _default_color()


def _default_color() -> Tuple[float, float, float]:
    named = colors.getAllNamedColors().get(settings.WATERMARK_COLOR.lower())
    if named is None:
        return DEFAULT_COLOR
    return (float(named.red), float(named.green), float(named.blue))


class WatermarkEngine:
    def apply(self, input_path: Path, spec: WatermarkSpec, output_path: Path) -> Path:
        """Stamp ``spec.text`` on every page of ``input_path``."""
        if not spec.text or not spec.text.strip():
            raise MissingParameter("Missing watermark text.")

        reader = open_pdf(input_path)
        writer = PdfWriter()
        font = resolve_font(spec.font)

        for source in reader.pages:
            # Pages must belong to the writer before they are stamped
            page = writer.add_page(source)
            page.merge_page(self._render_overlay(page, spec, font))

        with open(output_path, "wb") as output:
            writer.write(output)

        logger.info("Watermarked %d pages of %s", len(reader.pages), Path(input_path).name)
        return output_path

    def _render_overlay(self, page, spec: WatermarkSpec, font: str):
        box = page.mediabox
        left, bottom = float(box.left), float(box.bottom)
        width, height = float(box.width), float(box.height)

        anchor_x = left + width * spec.position_x
        anchor_y = bottom + height * spec.position_y

        buffer = BytesIO()
        overlay = canvas.Canvas(buffer, pagesize=(left + width, bottom + height))
        overlay.setFont(font, spec.font_size)
        red, green, blue = spec.color
        overlay.setFillColor(colors.Color(red, green, blue, alpha=spec.opacity))

        # Center the glyph box, not the baseline, on the anchor
        ascent = pdfmetrics.getAscent(font, spec.font_size)
        descent = pdfmetrics.getDescent(font, spec.font_size)
        overlay.translate(anchor_x, anchor_y)
        overlay.rotate(spec.rotation)
        overlay.drawCentredString(0, -(ascent + descent) / 2.0, spec.text)
        overlay.showPage()
        overlay.save()

        buffer.seek(0)
        return PdfReader(buffer).pages[0]

watermark_engine = WatermarkEngine()

from __future__ import annotations

import io
import logging
import math
from dataclasses import dataclass
from pathlib import PurePath

import fitz  # PyMuPDF
from PIL import Image

logger = logging.getLogger(__name__)

MIN_SCALE = 4.0
PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


@dataclass(frozen=True)
class RasterResult:
    image_bytes: bytes = b""
    width: int = 0
    height: int = 0
    filename: str = ""
    error: str | None = None

    @property
    def ok(self) -> bool:
        return not self.error and bool(self.image_bytes)


def image_filename(document_name: str | None) -> str:
    stem = PurePath(document_name or "").stem.strip()
    return f"{stem or 'resume'}.png"


def target_size(page_width: float, page_height: float, scale: float) -> tuple[int, int]:
    return math.ceil(page_width * scale), math.ceil(page_height * scale)


def _failure(message: str, filename: str) -> RasterResult:
    logger.warning("rasterize_failed file=%s: %s", filename, message)
    return RasterResult(filename=filename, error=message)


def rasterize(document: bytes, *, scale: float = MIN_SCALE, filename: str | None = None) -> RasterResult:
    """Render the first page of a PDF into a PNG.

    The page is drawn at ``max(scale, 4)`` times its natural size onto an RGB
    canvas of exactly ``ceil(width * scale) x ceil(height * scale)`` pixels.
    Never raises: every failure comes back as ``RasterResult.error``.
    """
    out_name = image_filename(filename)
    if not document:
        return _failure("Failed to convert PDF: empty document", out_name)

    scale = max(float(scale), MIN_SCALE)
    doc = None
    pix = None
    try:
        doc = fitz.open(stream=document, filetype="pdf")
        if doc.needs_pass:
            return _failure("Failed to convert PDF: password-protected PDFs are not supported", out_name)
        if doc.page_count < 1:
            return _failure("Failed to convert PDF: document has no pages", out_name)

        page = doc[0]
        width, height = target_size(page.rect.width, page.rect.height, scale)
        if width < 1 or height < 1:
            return _failure("Failed to convert PDF: first page has no drawable area", out_name)

        pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
        rendered = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
        if rendered.size != (width, height):
            canvas = Image.new("RGB", (width, height), (255, 255, 255))
            canvas.paste(rendered.crop((0, 0, min(width, pix.width), min(height, pix.height))), (0, 0))
            rendered = canvas

        buffer = io.BytesIO()
        rendered.save(buffer, format="PNG")
        image_bytes = buffer.getvalue()
        if not image_bytes.startswith(PNG_MAGIC):
            return _failure("Failed to create image blob", out_name)

        return RasterResult(image_bytes=image_bytes, width=width, height=height, filename=out_name)
    except Exception as exc:  # noqa: BLE001 - conversion errors are reported, not raised
        return _failure(f"Failed to convert PDF: {exc}", out_name)
    finally:
        pix = None
        if doc is not None:
            doc.close()

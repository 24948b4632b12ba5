"""
Document-to-image rasterizer.

Strategy by input type (sniffed from the leading bytes):
  1. PDF           - rendered page by page with PyMuPDF.
  2. Raster image  - PNG / JPEG / GIF / WebP / BMP / TIFF opened with
                     Pillow; one page per frame.
  3. Anything else - converted to PDF with LibreOffice headless inside a
                     temporary directory, then treated as (1).

Every page comes out as an RGB PNG whose longest side is capped, so the
vision model always sees the same canonical format.
"""

from __future__ import annotations

import io
import logging
import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import fitz
from PIL import Image

from dto.page import PageImage, RasterOutput
from dto.result import ErrorCode
from extraction.errors import ExtractionError

logger = logging.getLogger(__name__)

_PDF_POINTS_PER_INCH = 72

# Leading-byte signatures → MIME type.
_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
    (b"II*\x00", "image/tiff"),
    (b"MM\x00*", "image/tiff"),
)


def sniff_mime_type(data: bytes) -> str:
    """Best-effort MIME type from magic bytes; ``application/octet-stream`` if unknown."""
    if b"%PDF" in data[:1024]:
        return "application/pdf"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    for signature, mime in _SIGNATURES:
        if data.startswith(signature):
            return mime
    return "application/octet-stream"


# ---------------------------------------------------------------------------
# LibreOffice helper
# ---------------------------------------------------------------------------

_SOFFICE_NAMES = ("soffice", "libreoffice")


def _find_soffice() -> Optional[str]:
    """Return the path to soffice / libreoffice, or None."""
    for name in _SOFFICE_NAMES:
        path = shutil.which(name)
        if path:
            return path
    # macOS typical location
    mac_path = "/Applications/LibreOffice.app/Contents/MacOS/soffice"
    if os.path.isfile(mac_path):
        return mac_path
    return None


def _convert_with_libreoffice(document: bytes, timeout: float) -> bytes:
    """Convert an office document to PDF bytes via LibreOffice headless."""
    soffice = _find_soffice()
    if soffice is None:
        raise ExtractionError(
            ErrorCode.PDF_CONVERSION_FAILED,
            "Unsupported document type and LibreOffice is not installed",
        )

    with tempfile.TemporaryDirectory() as tmp_dir:
        src = os.path.join(tmp_dir, "document")
        with open(src, "wb") as fh:
            fh.write(document)

        cmd = [
            soffice,
            "--headless",
            "--convert-to",
            "pdf",
            "--outdir",
            tmp_dir,
            src,
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, timeout=timeout)
        except subprocess.TimeoutExpired as exc:
            raise ExtractionError(
                ErrorCode.PDF_CONVERSION_FAILED,
                f"LibreOffice conversion timed out after {timeout:.0f}s",
            ) from exc

        if result.returncode != 0:
            logger.warning(
                "LibreOffice conversion failed: %s",
                result.stderr.decode(errors="replace")[:500],
            )
            raise ExtractionError(
                ErrorCode.PDF_CONVERSION_FAILED, "LibreOffice could not convert the document"
            )

        pdf_path = os.path.join(tmp_dir, "document.pdf")
        if not os.path.isfile(pdf_path):
            # Sometimes the output name differs
            for f in Path(tmp_dir).glob("*.pdf"):
                pdf_path = str(f)
                break
            else:
                raise ExtractionError(
                    ErrorCode.PDF_CONVERSION_FAILED, "No PDF output found from LibreOffice"
                )

        with open(pdf_path, "rb") as fh:
            return fh.read()


# ---------------------------------------------------------------------------
# Rasterizer
# ---------------------------------------------------------------------------

class Rasterizer:
    """Turns a document buffer into ordered PNG page images."""

    def __init__(
        self,
        dpi: int = 150,
        max_side: int = 2400,
        soffice_timeout: float = 120.0,
    ) -> None:
        self._dpi = dpi
        self._max_side = max_side
        self._soffice_timeout = soffice_timeout

    def page_count(self, document: bytes) -> int:
        """True number of pages, independent of any rasterization cap."""
        kind, data = self._prepare(document)
        if kind == "image":
            with self._open_image(data) as img:
                return self._frame_count(img)
        with self._open_pdf(data) as doc:
            return doc.page_count

    def rasterize(
        self,
        document: bytes,
        max_pages: Optional[int] = None,
        page_numbers: Optional[Iterable[int]] = None,
    ) -> RasterOutput:
        """
        Render up to *max_pages* pages (all when None).  *page_numbers*
        (1-based) restricts rendering to a subset of those pages.

        Raises ExtractionError(PDF_CONVERSION_FAILED) when the document is
        unreadable, encrypted, or has no renderable page.
        """
        kind, data = self._prepare(document)
        if kind == "image":
            output = self._rasterize_image(data, max_pages, page_numbers)
        else:
            output = self._rasterize_pdf(data, max_pages, page_numbers)

        if not output.pages:
            raise ExtractionError(
                ErrorCode.PDF_CONVERSION_FAILED, "Document has no renderable pages"
            )
        logger.info(
            "  [Rasterizer] Rendered %d of %d page(s)",
            len(output.pages),
            output.total_pages,
        )
        return output

    # ------------------------------------------------------------------
    # Input handling
    # ------------------------------------------------------------------

    def _prepare(self, document: bytes) -> Tuple[str, bytes]:
        if not document:
            raise ExtractionError(ErrorCode.PDF_CONVERSION_FAILED, "Document is empty")
        mime = sniff_mime_type(document)
        if mime == "application/pdf":
            return "pdf", document
        if mime.startswith("image/"):
            return "image", document
        logger.info("  [Rasterizer] Unrecognised input, converting via LibreOffice")
        return "pdf", _convert_with_libreoffice(document, self._soffice_timeout)

    @staticmethod
    def _open_pdf(data: bytes) -> "fitz.Document":
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise ExtractionError(
                ErrorCode.PDF_CONVERSION_FAILED, f"Unreadable PDF: {exc}"
            ) from exc
        if doc.needs_pass:
            doc.close()
            raise ExtractionError(ErrorCode.PDF_CONVERSION_FAILED, "PDF is encrypted")
        if doc.page_count == 0:
            doc.close()
            raise ExtractionError(ErrorCode.PDF_CONVERSION_FAILED, "PDF has no pages")
        return doc

    @staticmethod
    def _open_image(data: bytes) -> Image.Image:
        try:
            img = Image.open(io.BytesIO(data))
            img.load()
        except Exception as exc:
            raise ExtractionError(
                ErrorCode.PDF_CONVERSION_FAILED, f"Unreadable image: {exc}"
            ) from exc
        return img

    @staticmethod
    def _frame_count(img: Image.Image) -> int:
        try:
            return getattr(img, "n_frames", 1)
        except Exception as exc:
            raise ExtractionError(
                ErrorCode.PDF_CONVERSION_FAILED, f"Unreadable image: {exc}"
            ) from exc

    @staticmethod
    def _wanted(total: int, max_pages: Optional[int], page_numbers: Optional[Iterable[int]]) -> List[int]:
        limit = total if max_pages is None else max(0, min(total, max_pages))
        if page_numbers is None:
            return list(range(1, limit + 1))
        return sorted({n for n in page_numbers if 1 <= n <= limit})

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _rasterize_pdf(
        self,
        data: bytes,
        max_pages: Optional[int],
        page_numbers: Optional[Iterable[int]],
    ) -> RasterOutput:
        zoom = self._dpi / _PDF_POINTS_PER_INCH
        matrix = fitz.Matrix(zoom, zoom)
        pages: List[PageImage] = []

        with self._open_pdf(data) as doc:
            total = doc.page_count
            for number in self._wanted(total, max_pages, page_numbers):
                try:
                    pix = doc.load_page(number - 1).get_pixmap(matrix=matrix, alpha=False)
                    img = Image.open(io.BytesIO(pix.tobytes(output="png")))
                    pages.append(self._to_page(img, number))
                except Exception:
                    logger.warning(
                        "  [Rasterizer] Failed to render page %d - skipping",
                        number,
                        exc_info=True,
                    )

        return RasterOutput(pages=pages, total_pages=total)

    def _rasterize_image(
        self,
        data: bytes,
        max_pages: Optional[int],
        page_numbers: Optional[Iterable[int]],
    ) -> RasterOutput:
        pages: List[PageImage] = []
        with self._open_image(data) as img:
            total = self._frame_count(img)
            for number in self._wanted(total, max_pages, page_numbers):
                try:
                    img.seek(number - 1)
                    pages.append(self._to_page(img, number))
                except Exception:
                    logger.warning(
                        "  [Rasterizer] Failed to render frame %d - skipping",
                        number,
                        exc_info=True,
                    )
        return RasterOutput(pages=pages, total_pages=total)

    def _to_page(self, img: Image.Image, page_number: int) -> PageImage:
        rgb = img.convert("RGB")
        if max(rgb.size) > self._max_side:
            rgb.thumbnail((self._max_side, self._max_side), Image.Resampling.LANCZOS)

        buf = io.BytesIO()
        rgb.save(buf, format="PNG")
        return PageImage(
            page_number=page_number,
            pixels=buf.getvalue(),
            width=rgb.width,
            height=rgb.height,
        )

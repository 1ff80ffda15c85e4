"""PDF report rendering.

:class:`ReportRenderer` lays out the downloadable plant report with
reportlab's canvas API:

- page 1: the title "Plant Analysis Report" (22pt, centred) followed by the
  analysis text (12pt, word-wrapped).  Text that overflows the page continues
  on further pages.
- last page (only when an image is supplied): the image scaled to fit a
  500x300 point box, centred horizontally.

The renderer is synchronous and CPU-bound; the HTTP layer runs it in the
thread pool and streams the finished bytes with :func:`iter_pdf_chunks`.
Because the document is complete before the first byte is sent, a drawing
failure always surfaces as :class:`~plantreport.core.errors.RenderError`
rather than a truncated download.

Documents are generated with reportlab's ``invariant`` mode, so rendering
the same input twice yields identical bytes.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Iterator

from PIL import Image, UnidentifiedImageError
from reportlab.lib.pagesizes import letter
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas

from plantreport.core.errors import RenderError

logger = logging.getLogger(__name__)

REPORT_TITLE = "Plant Analysis Report"
TEST_PAGE_TEXT = "PDF TEST - NO IMAGE"

PAGE_SIZE = letter
MARGIN = 72.0
TITLE_FONT = "Helvetica"
TITLE_FONT_SIZE = 22
BODY_FONT = "Helvetica"
BODY_FONT_SIZE = 12
LINE_SPACING = 1.2

# Bounding box the report image is scaled into, in points.
IMAGE_FIT_BOX: tuple[float, float] = (500.0, 300.0)

CHUNK_SIZE = 64 * 1024


def fit_within(width: float, height: float, box: tuple[float, float]) -> tuple[float, float]:
    """Scale ``width`` x ``height`` to the largest size fitting in ``box``.

    The aspect ratio is preserved.  Images smaller than the box are scaled
    up, matching the usual "fit" semantics of document layout libraries.

    Args:
        width: Source width.
        height: Source height.
        box: ``(max_width, max_height)`` of the bounding box.

    Returns:
        The scaled ``(width, height)``.

    Raises:
        ValueError: If either source dimension is not positive.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid image dimensions: {width}x{height}")
    scale = min(box[0] / width, box[1] / height)
    return width * scale, height * scale


def wrap_text(text: str, font_name: str, font_size: float, max_width: float) -> list[str]:
    """Break ``text`` into lines no wider than ``max_width``.

    Explicit newlines are kept; blank lines are preserved as empty strings.
    """
    lines: list[str] = []
    for paragraph in text.splitlines():
        if not paragraph.strip():
            lines.append("")
            continue
        lines.extend(simpleSplit(paragraph, font_name, font_size, max_width))
    return lines


def iter_pdf_chunks(pdf: bytes, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield a finished PDF in fixed-size chunks for a streaming response."""
    for start in range(0, len(pdf), chunk_size):
        yield pdf[start:start + chunk_size]


class ReportRenderer:
    """Render plant analysis reports as PDF bytes.

    Attributes:
        page_size: ``(width, height)`` of every page in points.
        margin: Page margin on all sides in points.
        image_box: Bounding box the optional image is fitted into.
    """

    def __init__(
        self,
        page_size: tuple[float, float] = PAGE_SIZE,
        margin: float = MARGIN,
        image_box: tuple[float, float] = IMAGE_FIT_BOX,
    ) -> None:
        self.page_size = page_size
        self.margin = margin
        self.image_box = image_box

    def _new_canvas(self, buffer: io.BytesIO, title: str) -> canvas.Canvas:
        pdf = canvas.Canvas(buffer, pagesize=self.page_size, invariant=1)
        pdf.setTitle(title)
        return pdf

    def render(self, text: str | None, image_bytes: bytes | None = None) -> bytes:
        """Render a report containing ``text`` and an optional image page.

        Args:
            text: Analysis text for the body.  ``None`` or empty produces a
                report with only the title.
            image_bytes: Encoded image (PNG, JPEG, ...) to place on its own
                page, or ``None`` for a text-only report.

        Returns:
            The complete PDF document.

        Raises:
            RenderError: If the image cannot be decoded or drawing fails.
        """
        image = self._load_image(image_bytes) if image_bytes else None

        buffer = io.BytesIO()
        try:
            pdf = self._new_canvas(buffer, REPORT_TITLE)
            self._draw_text_pages(pdf, text or "")
            if image is not None:
                pdf.showPage()
                self._draw_image_page(pdf, image)
            pdf.save()
        except RenderError:
            raise
        except Exception as e:
            raise RenderError(f"Failed to draw report: {e}") from e

        data = buffer.getvalue()
        logger.info(
            f"Rendered report ({len(text or '')} chars, image={'yes' if image is not None else 'no'}, "
            f"{len(data)} bytes)"
        )
        return data

    def render_test_page(self) -> bytes:
        """Render the fixed single-page diagnostic PDF.

        Raises:
            RenderError: If drawing fails.
        """
        buffer = io.BytesIO()
        try:
            pdf = self._new_canvas(buffer, TEST_PAGE_TEXT)
            pdf.setFont(TITLE_FONT, 20)
            _, height = self.page_size
            pdf.drawString(self.margin, height - self.margin - 20, TEST_PAGE_TEXT)
            pdf.save()
        except Exception as e:
            raise RenderError(f"Failed to draw test page: {e}") from e
        return buffer.getvalue()

    def _load_image(self, image_bytes: bytes) -> ImageReader:
        # Pillow verification catches truncated or non-image payloads before
        # any page is drawn.
        try:
            with Image.open(io.BytesIO(image_bytes)) as probe:
                probe.verify()
            return ImageReader(io.BytesIO(image_bytes))
        except (
            UnidentifiedImageError,
            Image.DecompressionBombError,
            OSError,
            SyntaxError,
            ValueError,
        ) as e:
            raise RenderError(f"Report image could not be decoded: {e}") from e

    def _draw_text_pages(self, pdf: canvas.Canvas, text: str) -> None:
        width, height = self.page_size
        text_width = width - 2 * self.margin

        y = height - self.margin - TITLE_FONT_SIZE
        pdf.setFont(TITLE_FONT, TITLE_FONT_SIZE)
        pdf.drawCentredString(width / 2, y, REPORT_TITLE)

        # One blank line between title and body.
        leading = BODY_FONT_SIZE * LINE_SPACING
        y -= TITLE_FONT_SIZE * LINE_SPACING + leading

        pdf.setFont(BODY_FONT, BODY_FONT_SIZE)
        for line in wrap_text(text, BODY_FONT, BODY_FONT_SIZE, text_width):
            if y < self.margin:
                pdf.showPage()
                pdf.setFont(BODY_FONT, BODY_FONT_SIZE)
                y = height - self.margin - BODY_FONT_SIZE
            if line:
                pdf.drawString(self.margin, y, line)
            y -= leading

    def _draw_image_page(self, pdf: canvas.Canvas, image: ImageReader) -> None:
        width, height = self.page_size
        source_width, source_height = image.getSize()
        draw_width, draw_height = fit_within(source_width, source_height, self.image_box)

        x = (width - draw_width) / 2
        y = height - self.margin - draw_height
        pdf.drawImage(image, x, y, width=draw_width, height=draw_height, mask="auto")

"""Tests for plantreport.core.report - PDF report rendering.

Rendered documents are inspected with pdfplumber.
"""

from __future__ import annotations

import io

import pdfplumber
import pytest

from plantreport.core.errors import RenderError
from plantreport.core.report import (
    IMAGE_FIT_BOX,
    REPORT_TITLE,
    ReportRenderer,
    fit_within,
    iter_pdf_chunks,
    wrap_text,
)


def _open(content: bytes):
    return pdfplumber.open(io.BytesIO(content))


class TestFitWithin:
    """Tests for the aspect-preserving fit calculation."""

    def test_wide_image_limited_by_width(self):
        assert fit_within(1000, 200, (500, 300)) == pytest.approx((500, 100))

    def test_tall_image_limited_by_height(self):
        assert fit_within(100, 600, (500, 300)) == pytest.approx((50, 300))

    def test_small_image_scaled_up(self):
        """Images smaller than the box are enlarged to touch it."""
        assert fit_within(50, 30, (500, 300)) == pytest.approx((500, 300))

    def test_invalid_dimensions(self):
        with pytest.raises(ValueError):
            fit_within(0, 10, (500, 300))


class TestWrapText:
    """Tests for body text wrapping."""

    def test_short_line_unchanged(self):
        assert wrap_text("Rose", "Helvetica", 12, 468) == ["Rose"]

    def test_long_line_wrapped(self):
        lines = wrap_text("word " * 200, "Helvetica", 12, 468)
        assert len(lines) > 1
        assert all(line for line in lines)

    def test_blank_lines_preserved(self):
        assert wrap_text("Species\n\nCare", "Helvetica", 12, 468) == ["Species", "", "Care"]

    def test_empty_text(self):
        assert wrap_text("", "Helvetica", 12, 468) == []


class TestIterPdfChunks:
    """Tests for chunked streaming of rendered documents."""

    def test_chunks_reassemble(self):
        data = bytes(range(256)) * 10
        chunks = list(iter_pdf_chunks(data, chunk_size=1000))
        assert [len(c) for c in chunks] == [1000, 1000, 560]
        assert b"".join(chunks) == data

    def test_empty_document(self):
        assert list(iter_pdf_chunks(b"")) == []


class TestReportRenderer:
    """Tests for ReportRenderer.render and render_test_page."""

    def test_text_report_single_page(self):
        renderer = ReportRenderer()
        with _open(renderer.render("Rose")) as pdf:
            assert len(pdf.pages) == 1
            text = pdf.pages[0].extract_text()
            assert REPORT_TITLE in text
            assert "Rose" in text

    def test_title_is_centred(self):
        renderer = ReportRenderer()
        with _open(renderer.render("")) as pdf:
            page = pdf.pages[0]
            words = page.extract_words()
            title_top = words[0]["top"]
            title = [w for w in words if abs(w["top"] - title_top) < 1]
            assert " ".join(w["text"] for w in title) == REPORT_TITLE
            centre = (title[0]["x0"] + title[-1]["x1"]) / 2
            assert centre == pytest.approx(page.width / 2, abs=2)

    def test_none_text(self):
        with _open(ReportRenderer().render(None)) as pdf:
            assert len(pdf.pages) == 1

    def test_image_on_second_page(self, png_bytes):
        with _open(ReportRenderer().render("Rose", png_bytes)) as pdf:
            assert len(pdf.pages) == 2
            assert pdf.pages[0].images == []
            assert len(pdf.pages[1].images) == 1

    def test_image_fits_box(self, png_factory):
        with _open(ReportRenderer().render("Fern", png_factory(300, 600))) as pdf:
            image = pdf.pages[1].images[0]
            assert image["width"] <= IMAGE_FIT_BOX[0] + 0.5
            assert image["height"] == pytest.approx(300, abs=0.5)
            assert image["width"] == pytest.approx(150, abs=0.5)

    def test_image_centred_horizontally(self, png_factory):
        with _open(ReportRenderer().render("", png_factory(100, 100))) as pdf:
            page = pdf.pages[1]
            image = page.images[0]
            assert (image["x0"] + image["x1"]) / 2 == pytest.approx(page.width / 2, abs=0.5)

    def test_jpeg_image(self):
        from PIL import Image

        buffer = io.BytesIO()
        Image.new("RGB", (64, 48), color=(200, 30, 30)).save(buffer, format="JPEG")
        with _open(ReportRenderer().render("Tulip", buffer.getvalue())) as pdf:
            assert len(pdf.pages) == 2

    def test_undecodable_image(self):
        with pytest.raises(RenderError):
            ReportRenderer().render("Rose", b"definitely not an image")

    def test_decompression_bomb(self, png_bytes, monkeypatch):
        from PIL import Image

        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
        with pytest.raises(RenderError):
            ReportRenderer().render("Rose", png_bytes)

    def test_render_is_deterministic(self, png_bytes):
        renderer = ReportRenderer()
        assert renderer.render("Rose", png_bytes) == renderer.render("Rose", png_bytes)

    def test_test_page(self):
        with _open(ReportRenderer().render_test_page()) as pdf:
            assert len(pdf.pages) == 1
            assert "PDF TEST - NO IMAGE" in pdf.pages[0].extract_text()

    def test_test_page_drawing_failure(self, monkeypatch):
        """Drawing errors on the test page surface as RenderError."""
        renderer = ReportRenderer()

        def broken(buffer, title):
            raise RuntimeError("canvas unavailable")

        monkeypatch.setattr(renderer, "_new_canvas", broken)
        with pytest.raises(RenderError, match="test page"):
            renderer.render_test_page()

"""
Tests for the text watermark overlay and its cosmetic fallbacks.
"""

import logging
import warnings

import pytest
from pypdf import PdfReader

from conftest import page_widths
from pdf_functions.core.errors import InvalidInputFormat, MissingParameter
from pdf_functions.schemas.watermark import WatermarkSpec
from pdf_functions.services.watermark_service import WatermarkEngine, resolve_color, resolve_font


@pytest.fixture
def engine():
    return WatermarkEngine()


class TestApply:
    def test_page_count_and_order_are_preserved(self, engine, pdf_file, tmp_path):
        source = pdf_file((300, 400), (612, 792), (200, 200))
        output = engine.apply(source, WatermarkSpec(text="DRAFT"), tmp_path / "out.pdf")

        assert page_widths(output) == [300, 612, 200]

    def test_text_is_drawn_on_every_page(self, engine, pdf_file, tmp_path):
        source = pdf_file((612, 792), (842, 595))
        spec = WatermarkSpec(text="CONFIDENTIAL", rotation=0, font_size=24)

        output = engine.apply(source, spec, tmp_path / "out.pdf")

        for page in PdfReader(str(output)).pages:
            assert "CONFIDENTIAL" in page.extract_text()

    def test_existing_geometry_is_untouched(self, engine, pdf_file, tmp_path):
        source = pdf_file((595, 842))
        output = engine.apply(source, WatermarkSpec(text="COPY"), tmp_path / "out.pdf")

        page = PdfReader(str(output)).pages[0]
        assert round(float(page.mediabox.width)) == 595
        assert round(float(page.mediabox.height)) == 842

    def test_stamps_pages_owned_by_the_writer(self, engine, pdf_file, tmp_path):
        source = pdf_file((612, 792), (300, 300))

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            engine.apply(source, WatermarkSpec(text="DRAFT"), tmp_path / "out.pdf")

        pypdf_deprecations = [
            w for w in caught
            if issubclass(w.category, DeprecationWarning) and "pypdf" in w.filename
        ]
        assert pypdf_deprecations == []

    @pytest.mark.parametrize("opacity", [0.0, 1.0])
    def test_boundary_opacities_render(self, engine, pdf_file, tmp_path, opacity):
        source = pdf_file((200, 200))
        output = engine.apply(source, WatermarkSpec(text="X", opacity=opacity), tmp_path / "out.pdf")
        assert len(PdfReader(str(output)).pages) == 1

    def test_blank_text_is_a_missing_parameter(self, engine, pdf_file, tmp_path):
        source = pdf_file((200, 200))
        with pytest.raises(MissingParameter):
            engine.apply(source, WatermarkSpec(text="   "), tmp_path / "out.pdf")

    def test_invalid_pdf_is_rejected(self, engine, tmp_path):
        bad = tmp_path / "bad.pdf"
        bad.write_bytes(b"%PDF-1.4 truncated")
        with pytest.raises(InvalidInputFormat):
            engine.apply(bad, WatermarkSpec(text="X"), tmp_path / "out.pdf")

    def test_unknown_font_on_spec_still_renders(self, engine, pdf_file, tmp_path):
        source = pdf_file((200, 200))
        output = engine.apply(source, WatermarkSpec(text="X", font="Wingdings"), tmp_path / "out.pdf")
        assert len(PdfReader(str(output)).pages) == 1


class TestWatermarkSpec:
    @pytest.mark.parametrize("given, expected", [
        (-0.5, 0.0),
        (0.0, 0.0),
        (0.25, 0.25),
        (1.0, 1.0),
        (7.0, 1.0),
    ])
    def test_opacity_is_clamped(self, given, expected):
        assert WatermarkSpec(text="x", opacity=given).opacity == expected

    def test_position_is_clamped(self):
        spec = WatermarkSpec(text="x", position_x=-1, position_y=2)
        assert (spec.position_x, spec.position_y) == (0.0, 1.0)

    def test_defaults(self):
        spec = WatermarkSpec(text="x")
        assert spec.font == "Helvetica"
        assert spec.color == (0.0, 0.0, 1.0)
        assert (spec.position_x, spec.position_y) == (0.5, 0.6)
        assert spec.rotation == 45.0


class TestResolveFont:
    @pytest.mark.parametrize("name, expected", [
        ("Helvetica", "Helvetica"),
        ("helvetica-bold", "Helvetica-Bold"),
        ("Arial Bold", "Helvetica-Bold"),
        ("Arial Italic", "Helvetica-Oblique"),
        ("Times New Roman", "Times-Roman"),
        ("times new roman italic", "Times-Italic"),
        ("Times-BoldItalic", "Times-BoldItalic"),
        ("Courier-BoldOblique", "Courier-BoldOblique"),
        ("monospace bold", "Courier-Bold"),
    ])
    def test_known_names(self, name, expected):
        assert resolve_font(name) == expected

    @pytest.mark.parametrize("name", ["Comic Sans", "Helvetica Extra Condensed", "", None])
    def test_unknown_names_fall_back_to_helvetica(self, name):
        assert resolve_font(name) == "Helvetica"

    def test_fallback_is_logged(self, caplog):
        with caplog.at_level(logging.WARNING):
            resolve_font("Papyrus")
        assert "Papyrus" in caplog.text


class TestResolveColor:
    @pytest.mark.parametrize("value, expected", [
        ("#FF0000", (1.0, 0.0, 0.0)),
        ("00ff00", (0.0, 1.0, 0.0)),
        ("red", (1.0, 0.0, 0.0)),
        ("Blue", (0.0, 0.0, 1.0)),
        ("white", (1.0, 1.0, 1.0)),
    ])
    def test_known_values(self, value, expected):
        assert resolve_color(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", ["not-a-color", "#12345", "#GGGGGG", "", None])
    def test_unknown_values_fall_back_to_blue(self, value):
        assert resolve_color(value) == pytest.approx((0.0, 0.0, 1.0))

    def test_fallback_is_logged(self, caplog):
        with caplog.at_level(logging.WARNING):
            resolve_color("octarine")
        assert "octarine" in caplog.text

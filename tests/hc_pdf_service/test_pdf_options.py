"""
Unit tests for the preset PDF option table and resolver.
"""

import json
import logging
from pathlib import Path

import pytest

from hc_pdf_service.config import PdfServiceSettings
from hc_pdf_service.errors import ConfigFailure
from hc_pdf_service.pdf_options import (
    BuiltinPresetSource,
    JsonFilePresetSource,
    PdfMargin,
    PdfOptions,
    PresetPdfOptionsLoader,
)

SAMPLE_PRESET_FILE = Path(__file__).resolve().parents[2] / "hc_pdf_service" / "presets" / "my_preset.sample.json"


@pytest.fixture
def loader():
    return PresetPdfOptionsLoader.from_source(BuiltinPresetSource(PdfServiceSettings()))


class TestBuiltinPresets:
    """Tests for the built-in preset table."""

    def test_contains_all_builtin_names(self, loader):
        assert set(loader.preset) == {
            "DEFAULT", "A4", "A3", "A4L", "A3L", "A4Full", "A4LandscapeFull"
        }

    def test_default_preset_follows_settings(self):
        settings = PdfServiceSettings(
            default_pdf_option_format="Letter",
            default_pdf_option_landscape=True,
            default_pdf_option_margin="5mm",
            default_pdf_option_print_background=False,
        )
        default = BuiltinPresetSource(settings).load()["DEFAULT"]

        assert default.format == "Letter"
        assert default.landscape is True
        assert default.margin == PdfMargin.uniform("5mm")
        assert default.print_background is False
        assert default.prefer_css_page_size is True

    def test_full_presets_have_zero_margins(self, loader):
        assert loader.preset["A4Full"].margin == PdfMargin.uniform("0mm")
        assert loader.preset["A4LandscapeFull"].landscape is True

    def test_landscape_presets(self, loader):
        assert loader.preset["A4L"].landscape is True
        assert loader.preset["A3L"].format == "A3"
        assert loader.preset["A4"].landscape is None


class TestResolve:
    """Tests for name resolution with fallback."""

    def test_resolve_known_name(self, loader):
        options = loader.resolve("A4", "DEFAULT")
        assert options.format == "A4"
        assert options.margin == PdfMargin.uniform("10mm")

    def test_resolve_absent_name_uses_default_name(self, loader):
        assert loader.resolve(None, "A3") is loader.preset["A3"]

    def test_resolve_empty_name_returns_empty_options(self, loader):
        assert loader.resolve("", "A4L") == PdfOptions()

    @pytest.mark.parametrize("name", ["FOO", "a4", "DEFAULT ", "unknown-preset"])
    def test_unknown_name_falls_back_to_empty_options(self, loader, name, caplog):
        with caplog.at_level(logging.ERROR, logger="hc_pdf_service.pdf_options"):
            options = loader.resolve(name, "DEFAULT")

        assert options == PdfOptions()
        assert options.to_playwright_kwargs() == {}
        assert f"PDFOptions not found {name}" in caplog.text

    def test_unknown_default_name_does_not_raise(self, loader):
        assert loader.resolve(None, "MISSING") == PdfOptions()

    def test_get_without_name_returns_empty_options(self, loader):
        assert loader.get() == PdfOptions()

    def test_preset_table_is_read_only(self, loader):
        with pytest.raises(TypeError):
            loader.preset["NEW"] = PdfOptions()


class TestPdfOptionsModel:
    """Tests for PdfOptions serialization."""

    def test_playwright_kwargs_use_snake_case_and_skip_unset(self):
        options = PdfOptions.model_validate({
            "format": "A4",
            "margin": {"top": "1cm"},
            "printBackground": True,
            "preferCSSPageSize": False,
        })

        assert options.to_playwright_kwargs() == {
            "format": "A4",
            "margin": {"top": "1cm"},
            "print_background": True,
            "prefer_css_page_size": False,
        }

    def test_public_dict_uses_preset_file_keys(self, loader):
        data = loader.to_public_dict()["A4Full"]

        assert data["format"] == "A4"
        assert data["printBackground"] is True
        assert data["preferCSSPageSize"] is True
        assert data["margin"] == {"top": "0mm", "bottom": "0mm", "left": "0mm", "right": "0mm"}

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValueError):
            PdfOptions.model_validate({"format": "A4", "colour": "red"})


class TestJsonFilePresetSource:
    """Tests for loading presets from a JSON file."""

    def test_loads_valid_file(self, tmp_path):
        path = tmp_path / "presets.json"
        path.write_text(json.dumps({
            "Receipt": {"width": "80mm", "height": "200mm", "printBackground": False},
            "A5": {"format": "A5", "landscape": True},
        }))

        presets = JsonFilePresetSource(str(path)).load()

        assert set(presets) == {"Receipt", "A5"}
        assert presets["Receipt"].width == "80mm"
        assert presets["A5"].landscape is True

    def test_sample_file_loads(self):
        presets = JsonFilePresetSource(str(SAMPLE_PRESET_FILE)).load()
        assert set(presets) == {"A4Full", "A4LandscapeFull"}

    def test_missing_file_is_config_failure(self, tmp_path):
        with pytest.raises(ConfigFailure, match="not found"):
            JsonFilePresetSource(str(tmp_path / "missing.json")).load()

    def test_invalid_json_is_config_failure(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(ConfigFailure, match="not valid JSON"):
            JsonFilePresetSource(str(path)).load()

    @pytest.mark.parametrize("content", ["{}", "[]", "\"A4\""])
    def test_empty_or_non_object_is_config_failure(self, tmp_path, content):
        path = tmp_path / "presets.json"
        path.write_text(content)
        with pytest.raises(ConfigFailure, match="non-empty object"):
            JsonFilePresetSource(str(path)).load()

    def test_invalid_preset_is_config_failure(self, tmp_path):
        path = tmp_path / "presets.json"
        path.write_text(json.dumps({"Bad": {"scale": -1}}))
        with pytest.raises(ConfigFailure, match="Invalid preset 'Bad'"):
            JsonFilePresetSource(str(path)).load()

    def test_from_settings_uses_configured_file(self, tmp_path):
        path = tmp_path / "presets.json"
        path.write_text(json.dumps({"Only": {"format": "A6"}}))

        loader = PresetPdfOptionsLoader.from_settings(
            PdfServiceSettings(preset_pdf_options_file_path=str(path))
        )

        assert list(loader.preset) == ["Only"]

    def test_from_settings_without_file_uses_builtin(self):
        loader = PresetPdfOptionsLoader.from_settings(PdfServiceSettings())
        assert "DEFAULT" in loader.preset

"""
Preset PDF option table and resolver.

The table maps a preset name to a concrete set of page.pdf() options. It is
loaded exactly once at startup from a PresetSource and is read-only
afterwards. Lookups never fail a request: unknown names resolve to the empty
option record, which lets Chromium apply its own defaults.
"""

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import PdfServiceSettings
from .errors import ConfigFailure

logger = logging.getLogger(__name__)


class PdfMargin(BaseModel):
    """Page margins as CSS lengths (e.g. "10mm")."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    top: Optional[str] = None
    bottom: Optional[str] = None
    left: Optional[str] = None
    right: Optional[str] = None

    @classmethod
    def uniform(cls, value: str) -> "PdfMargin":
        return cls(top=value, bottom=value, left=value, right=value)


class PdfOptions(BaseModel):
    """
    One preset's output options.

    Field aliases use the camelCase keys of the preset file format; the
    Python names match Playwright's page.pdf() keyword arguments.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    format: Optional[str] = Field(None, description="Paper format, e.g. 'A4'")
    landscape: Optional[bool] = None
    margin: Optional[PdfMargin] = None
    print_background: Optional[bool] = Field(None, alias="printBackground")
    prefer_css_page_size: Optional[bool] = Field(None, alias="preferCSSPageSize")
    scale: Optional[float] = Field(None, gt=0)
    page_ranges: Optional[str] = Field(None, alias="pageRanges")
    width: Optional[str] = None
    height: Optional[str] = None
    display_header_footer: Optional[bool] = Field(None, alias="displayHeaderFooter")
    header_template: Optional[str] = Field(None, alias="headerTemplate")
    footer_template: Optional[str] = Field(None, alias="footerTemplate")

    def to_playwright_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for page.pdf(), omitting unset options."""
        return self.model_dump(exclude_none=True)

    def to_public_dict(self) -> Dict[str, Any]:
        """Preset file representation, used by the diagnostics endpoint."""
        return self.model_dump(by_alias=True, exclude_none=True)


class PresetSource(Protocol):
    """Anything that can supply the preset table at startup."""

    def load(self) -> Dict[str, PdfOptions]:
        ...


class BuiltinPresetSource:
    """Built-in presets, with DEFAULT shaped by configuration."""

    def __init__(self, settings: PdfServiceSettings):
        self.settings = settings

    def load(self) -> Dict[str, PdfOptions]:
        default_margin = PdfMargin.uniform(self.settings.default_pdf_option_margin)
        zero_margin = PdfMargin.uniform("0mm")

        def preset(**kwargs) -> PdfOptions:
            kwargs.setdefault("print_background", True)
            kwargs.setdefault("prefer_css_page_size", True)
            return PdfOptions(**kwargs)

        return {
            "DEFAULT": preset(
                format=self.settings.default_pdf_option_format,
                landscape=self.settings.default_pdf_option_landscape,
                margin=default_margin,
                print_background=self.settings.default_pdf_option_print_background,
            ),
            "A4": preset(format="A4", margin=default_margin),
            "A3": preset(format="A3", margin=default_margin),
            "A4L": preset(format="A4", landscape=True, margin=default_margin),
            "A3L": preset(format="A3", landscape=True, margin=default_margin),
            "A4Full": preset(format="A4", margin=zero_margin),
            "A4LandscapeFull": preset(format="A4", landscape=True, margin=zero_margin),
        }


class JsonFilePresetSource:
    """
    Presets from a JSON file of the form {"NAME": {"format": "A4", ...}}.

    Any problem reading or validating the file is a ConfigFailure.
    """

    def __init__(self, path: str):
        self.path = Path(path)

    def load(self) -> Dict[str, PdfOptions]:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise ConfigFailure(f"Preset PDF options file not found: {self.path}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigFailure(f"Preset PDF options file is unreadable: {self.path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigFailure(f"Preset PDF options file is not valid JSON: {self.path}: {e}") from e

        if not isinstance(raw, dict) or not raw:
            raise ConfigFailure(f"Preset PDF options file must hold a non-empty object: {self.path}")

        presets = {}
        for name, options in raw.items():
            try:
                presets[name] = PdfOptions.model_validate(options)
            except ValidationError as e:
                raise ConfigFailure(f"Invalid preset {name!r} in {self.path}: {e}") from e
        return presets


class PresetPdfOptionsLoader:
    """Holds the immutable preset table and resolves names against it."""

    default_pdf_options = PdfOptions()

    def __init__(self, preset: Mapping[str, PdfOptions]):
        self._preset = MappingProxyType(dict(preset))

    @classmethod
    def from_source(cls, source: PresetSource) -> "PresetPdfOptionsLoader":
        preset = source.load()
        logger.info(f"Loaded {len(preset)} PDF option presets: {', '.join(preset)}")
        return cls(preset)

    @classmethod
    def from_settings(cls, settings: PdfServiceSettings) -> "PresetPdfOptionsLoader":
        """Load from the configured file, or the built-in table when none is set."""
        if settings.preset_pdf_options_file_path:
            source: PresetSource = JsonFilePresetSource(settings.preset_pdf_options_file_path)
        else:
            source = BuiltinPresetSource(settings)
        return cls.from_source(source)

    @property
    def preset(self) -> Mapping[str, PdfOptions]:
        return self._preset

    def get(self, name: Optional[str] = None) -> PdfOptions:
        if not name:
            return self.default_pdf_options
        if name not in self._preset:
            logger.error(f"PDFOptions not found {name}, use default.")
            return self.default_pdf_options
        return self._preset[name]

    def resolve(self, name: Optional[str], default_name: str) -> PdfOptions:
        """
        Look up name, falling back to default_name when name is None.

        An empty name is not absent: it resolves to the empty option record.
        """
        return self.get(default_name if name is None else name)

    def to_public_dict(self) -> Dict[str, Dict[str, Any]]:
        return {name: options.to_public_dict() for name, options in self._preset.items()}

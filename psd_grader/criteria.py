from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from psd_grader.config import load_default_criteria_payload
from psd_grader.filename_patterns import MODE_TEMPLATE, PATTERN_TYPES, PRESET_TEMPLATES

logger = logging.getLogger(__name__)

DEFAULT_FILENAME_POINTS = 10
DEFAULT_POINTS_PER_CRITERION = 20


def _name_list(value: Any) -> Any:
    """Accept null for a name list and drop blank entries."""

    if value is None:
        return []
    if isinstance(value, list):
        return [name.strip() if isinstance(name, str) else name for name in value if not (isinstance(name, str) and not name.strip())]
    return value


class _CriteriaModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class FilenameCriteria(_CriteriaModel):
    enabled: bool = False
    pattern: str = ""
    pattern_type: str = Field(default=MODE_TEMPLATE, alias="patternType")
    points: int = Field(default=DEFAULT_FILENAME_POINTS, ge=0)
    case_sensitive: bool = Field(default=False, alias="caseSensitive")

    @field_validator("pattern_type")
    @classmethod
    def normalize_pattern_type(cls, value: str) -> str:
        normalized = (value or MODE_TEMPLATE).strip().lower()
        if normalized not in PATTERN_TYPES:
            raise ValueError(f"Unsupported pattern type '{value}'. Supported types: {', '.join(PATTERN_TYPES)}.")
        return normalized

    @property
    def is_configured(self) -> bool:
        # Presets carry their own template.
        return self.pattern_type in PRESET_TEMPLATES or bool(self.pattern.strip())


class TechnicalCriteria(_CriteriaModel):
    enabled: bool = False
    width: int | None = Field(default=None, ge=0)
    height: int | None = Field(default=None, ge=0)
    color_mode: str | None = Field(default=None, alias="colorMode")
    min_layers: int | None = Field(default=None, ge=0, alias="minLayers")
    required_layers: list[str] = Field(default_factory=list, alias="requiredLayers")
    resolution: int | None = Field(default=None, ge=0)
    points_per_criterion: int = Field(default=DEFAULT_POINTS_PER_CRITERION, ge=0, alias="pointsPerCriterion")
    required_layers_partial_credit: bool = Field(default=False, alias="requiredLayersPartialCredit")

    @field_validator("required_layers", mode="before")
    @classmethod
    def clean_layer_names(cls, value: Any) -> Any:
        return _name_list(value)


class FontCriteria(_CriteriaModel):
    enabled: bool = False
    approved_fonts: list[str] = Field(default_factory=list, alias="approvedFonts")
    required_fonts: list[str] = Field(default_factory=list, alias="requiredFonts")
    points_per_criterion: int = Field(default=DEFAULT_POINTS_PER_CRITERION, ge=0, alias="pointsPerCriterion")

    @field_validator("approved_fonts", "required_fonts", mode="before")
    @classmethod
    def clean_font_names(cls, value: Any) -> Any:
        return _name_list(value)

    @property
    def is_configured(self) -> bool:
        return bool(self.approved_fonts or self.required_fonts)


class Criteria(_CriteriaModel):
    """Instructor rubric: three independently enabled rule groups."""

    filename: FilenameCriteria = Field(default_factory=FilenameCriteria)
    technical: TechnicalCriteria = Field(default_factory=TechnicalCriteria)
    fonts: FontCriteria = Field(default_factory=FontCriteria)


def parse_criteria(payload: dict | None) -> Criteria:
    """Validate a camelCase criteria payload; raises ``pydantic.ValidationError``."""

    return Criteria.model_validate(payload or {})


def load_default_criteria(path: str | None = None) -> tuple[Criteria, str]:
    payload, source = load_default_criteria_payload(path)
    try:
        return parse_criteria(payload), source
    except ValidationError as exc:
        logger.warning("Default criteria from %s are invalid: %s", source, exc)
        return Criteria(), "default"

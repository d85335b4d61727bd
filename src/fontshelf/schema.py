"""Pydantic v2 models for stored fonts, derived characteristics and font groups."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from fontshelf.config import FALLBACK_FAMILY, MAX_WEIGHT, MIN_WEIGHT
from fontshelf.errors import GroupValidationError


class FontStyle(str, Enum):
    NORMAL = "normal"
    ITALIC = "italic"


class ActivationState(str, Enum):
    """Per-FaceKey activation state, held only for the session."""

    NOT_ATTEMPTED = "not-attempted"
    PENDING = "pending"
    ACTIVE = "active"
    FAILED = "failed"


class FontRecord(BaseModel):
    """Identity of a stored font file. Immutable once created."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    filename: str
    display_name: str = Field(alias="name")
    storage_path: str = Field(alias="path")

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class FaceKey(BaseModel):
    """The (family, weight, style) identity of a rendering face."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, alias_generator=to_camel)

    family_name: str
    weight: int
    style: FontStyle = FontStyle.NORMAL

    def __str__(self) -> str:
        return f"{self.family_name}-{self.weight}-{self.style.value}"


class FontMetrics(BaseModel):
    """Vertical metrics, only present when read from the font binary."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, alias_generator=to_camel)

    ascender: int
    descender: int
    line_gap: int
    units_per_em: int


class FontCharacteristics(BaseModel):
    """Typographic characteristics derived from a font binary or its name."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, alias_generator=to_camel)

    family_name: str
    weight: int = 400
    style: FontStyle = FontStyle.NORMAL
    is_serif: bool = False
    is_monospace: bool = False
    metrics: FontMetrics | None = None
    source: Literal["binary", "heuristic"] = "heuristic"

    @field_validator("family_name")
    @classmethod
    def family_not_empty(cls, v: str) -> str:
        v = v.strip()
        return v or FALLBACK_FAMILY

    @field_validator("weight")
    @classmethod
    def weight_in_range(cls, v: int) -> int:
        if not MIN_WEIGHT <= v <= MAX_WEIGHT:
            msg = f"Weight must be between {MIN_WEIGHT} and {MAX_WEIGHT}, got {v}"
            raise ValueError(msg)
        return v

    @property
    def face_key(self) -> FaceKey:
        return FaceKey(family_name=self.family_name, weight=self.weight, style=self.style)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Font groups
# ---------------------------------------------------------------------------


class GroupFont(BaseModel):
    """One row of a font group: a label plus the id of the selected font."""

    model_config = ConfigDict(populate_by_name=True)

    display_name: str = Field(alias="name")
    selected_font_id: str = Field(alias="selectedFont")

    @field_validator("display_name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            msg = "Font name is required"
            raise ValueError(msg)
        return v

    @field_validator("selected_font_id")
    @classmethod
    def selection_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            msg = "Each row must select a font"
            raise ValueError(msg)
        return v


class GroupPayload(BaseModel):
    """Create/update input for a font group."""

    model_config = ConfigDict(populate_by_name=True)

    title: str
    fonts: list[GroupFont]

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            msg = "Group title is required"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def at_least_two_distinct_fonts(self) -> GroupPayload:
        if len(self.fonts) < 2:
            msg = "You must select at least two fonts to create a group"
            raise ValueError(msg)
        selected = [row.selected_font_id for row in self.fonts]
        if len(set(selected)) != len(selected):
            msg = "Cannot select the same font multiple times"
            raise ValueError(msg)
        return self


class FontGroup(GroupPayload):
    """A stored font group."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    id: str
    created_at: datetime
    updated_at: datetime | None = None

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _format_validation_error(exc: ValidationError) -> str:
    messages = []
    for error in exc.errors():
        msg = error["msg"].removeprefix("Value error, ")
        field_path = ".".join(str(part) for part in error["loc"])
        if error["type"] == "value_error" or not field_path:
            messages.append(msg)
        else:
            messages.append(f"{field_path}: {msg}")
    return "; ".join(messages)


def parse_group_payload(data: Any) -> GroupPayload:
    """Validate raw group input, raising GroupValidationError with a readable message."""
    if not isinstance(data, dict):
        msg = "Group data must be an object"
        raise GroupValidationError(msg)
    try:
        return GroupPayload.model_validate(data)
    except ValidationError as e:
        raise GroupValidationError(_format_validation_error(e)) from e

"""Pydantic settings for capture and history-table migration behavior."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator

from packages.rowtrail_shared.config import RowtrailSettings, resolve_component_settings

CAPTURE_COMPONENT_ID = "capture"
SCHEMA_COMPONENT_ID = "history_schema"
DEFAULT_HISTORY_SUFFIX = "_history"


def _validate_suffix(value: str) -> str:
    if value == "":
        return DEFAULT_HISTORY_SUFFIX
    if value != value.strip():
        raise ValueError("history_suffix must not carry surrounding whitespace")
    return value


class CaptureSettings(BaseModel):
    """Capturing-transaction runtime settings.

    An empty ``history_suffix`` falls back to ``_history``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    history_suffix: str = DEFAULT_HISTORY_SUFFIX
    skip_if_missing: bool = False
    augment_returning: bool = False

    @field_validator("history_suffix")
    @classmethod
    def _validate_history_suffix(cls, value: str) -> str:
        return _validate_suffix(value)


class SchemaSettings(BaseModel):
    """History-table migration settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    history_suffix: str = DEFAULT_HISTORY_SUFFIX
    create_id_index: bool = False

    @field_validator("history_suffix")
    @classmethod
    def _validate_history_suffix(cls, value: str) -> str:
        return _validate_suffix(value)


def resolve_capture_settings(settings: RowtrailSettings) -> CaptureSettings:
    """Resolve capture settings from ``components.capture``."""
    return resolve_component_settings(
        settings=settings,
        component_id=CAPTURE_COMPONENT_ID,
        model=CaptureSettings,
    )


def resolve_schema_settings(settings: RowtrailSettings) -> SchemaSettings:
    """Resolve migration settings from ``components.history_schema``."""
    return resolve_component_settings(
        settings=settings,
        component_id=SCHEMA_COMPONENT_ID,
        model=SchemaSettings,
    )

"""Typed configuration models for rowtrail runtime settings.

Layout of ``rowtrail.yaml``::

    logging: {level, json_output, service, environment, sql_echo}
    components:
      substrate:
        postgres: {...}      # resources.substrates.postgres
      capture: {...}         # capturing transactions
      history_schema: {...}  # history-table migration
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Mapping, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "rowtrail" / "rowtrail.yaml"

# Component kinds whose sections are nested one level deeper (``<kind>.<name>``).
GROUPED_COMPONENT_KINDS = ("substrate",)


class LoggingSettings(BaseModel):
    """Structured logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_output: bool = True
    service: str = "rowtrail"
    environment: str = "dev"
    sql_echo: bool = False


class ComponentsSettings(BaseModel):
    """The ``components`` subtree.

    Substrates live under ``substrate.<name>``; core sections such as
    ``capture`` are stored as model extras and validated by their owners.
    """

    model_config = ConfigDict(extra="allow")

    substrate: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _require_grouped_sections(cls, value: object) -> object:
        if not isinstance(value, dict):
            return value
        for key in value:
            kind, separator, name = str(key).partition("_")
            if separator and kind in GROUPED_COMPONENT_KINDS:
                raise ValueError(
                    f"components.{key} is invalid; use components.{kind}.{name} instead"
                )
        return value

    def section(self, component_id: str) -> tuple[str, object]:
        """Return the dotted config path and raw value for ``component_id``."""
        kind, separator, name = component_id.partition("_")
        if separator and kind in GROUPED_COMPONENT_KINDS:
            return f"components.{kind}.{name}", getattr(self, kind).get(name)
        return f"components.{component_id}", (self.model_extra or {}).get(component_id)


class RowtrailSettings(BaseSettings):
    """Root settings; ``ROWTRAIL_`` env vars use ``__`` between nested keys."""

    model_config = SettingsConfigDict(
        env_prefix="ROWTRAIL_",
        env_nested_delimiter="__",
        extra="ignore",
        nested_model_default_partial_update=True,
        yaml_file=DEFAULT_CONFIG_PATH,
        yaml_file_encoding="utf-8",
    )

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    components: ComponentsSettings = Field(default_factory=ComponentsSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # init > env > yaml > defaults; dotenv and secret files are not read.
        return (init_settings, env_settings, YamlConfigSettingsSource(settings_cls))


TComponentSettings = TypeVar("TComponentSettings", bound=BaseModel)


def resolve_component_settings(
    *,
    settings: RowtrailSettings,
    component_id: str,
    model: type[TComponentSettings],
) -> TComponentSettings:
    """Validate the ``components`` section for ``component_id`` with ``model``.

    ``substrate_postgres`` reads ``components.substrate.postgres``; any other
    id reads ``components.<id>``. A missing section yields model defaults.
    """
    path, raw = settings.components.section(component_id)
    if raw is None:
        return model()
    if not isinstance(raw, Mapping):
        raise ValueError(f"{path} must resolve to an object mapping")
    return model.model_validate(dict(raw))

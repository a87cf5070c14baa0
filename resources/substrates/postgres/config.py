"""Configuration model for shared Postgres substrate access."""

from __future__ import annotations

from urllib.parse import quote_plus

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from packages.rowtrail_shared.config import RowtrailSettings, resolve_component_settings

SUBSTRATE_COMPONENT_ID = "substrate_postgres"

_SSL_MODES = frozenset(
    {"disable", "allow", "prefer", "require", "verify-ca", "verify-full"}
)


class PostgresSettings(BaseModel):
    """Runtime settings for constructing Postgres engines and pools."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str = ""
    host: str = "localhost"
    port: int = Field(default=5432, gt=0)
    database: str = "rowtrail"
    user: str = "rowtrail"
    password: str = "rowtrail"
    pool_size: int = Field(default=5, gt=0)
    max_overflow: int = Field(default=10, ge=0)
    pool_timeout_seconds: float = Field(default=30.0, gt=0)
    pool_pre_ping: bool = True
    connect_timeout_seconds: float = Field(default=10.0, gt=0)
    health_timeout_seconds: float = Field(default=1.0, gt=0)
    sslmode: str = "prefer"
    application_name: str = "rowtrail"
    hide_parameters: bool = True

    @field_validator("pool_pre_ping", "hide_parameters", mode="before")
    @classmethod
    def _coerce_flags(cls, value: object) -> object:
        """Accept on/off style spellings from YAML and env."""
        return _coerce_bool(value)

    @field_validator("sslmode")
    @classmethod
    def _validate_sslmode(cls, value: str) -> str:
        """Restrict sslmode to libpq-recognized values."""
        if value not in _SSL_MODES:
            raise ValueError(
                "postgres.sslmode must be one of: "
                "disable, allow, prefer, require, verify-ca, verify-full"
            )
        return value

    @model_validator(mode="after")
    def _fill_url_from_parts(self) -> "PostgresSettings":
        """Build the SQLAlchemy URL from split values when ``url`` is unset."""
        if self.url.strip():
            return self
        object.__setattr__(self, "url", _build_url_from_parts(self))
        return self


def resolve_postgres_settings(settings: RowtrailSettings) -> PostgresSettings:
    """Resolve Postgres settings from ``components.substrate.postgres``."""
    return resolve_component_settings(
        settings=settings,
        component_id=SUBSTRATE_COMPONENT_ID,
        model=PostgresSettings,
    )


def _build_url_from_parts(postgres: PostgresSettings) -> str:
    """Construct SQLAlchemy psycopg URL from split config values."""
    host = postgres.host.strip()
    database = postgres.database.strip()
    user = postgres.user.strip()

    if not host:
        raise ValueError("postgres.host is required when postgres.url is unset")
    if not database:
        raise ValueError("postgres.database is required when postgres.url is unset")
    if not user:
        raise ValueError("postgres.user is required when postgres.url is unset")

    return (
        "postgresql+psycopg://"
        f"{quote_plus(user)}:{quote_plus(postgres.password)}"
        f"@{host}:{postgres.port}/{quote_plus(database)}"
    )


def _coerce_bool(value: object) -> object:
    """Map common string spellings of booleans; leave other values to pydantic."""
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes", "on"}:
            return True
        if lowered in {"false", "0", "no", "off"}:
            return False
    return value


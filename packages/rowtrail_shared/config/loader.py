"""Settings loading with deterministic precedence.

The cascade is always:
1) CLI params
2) Environment variables
3) ~/.config/rowtrail/rowtrail.yaml (or an explicit path)
4) Model defaults

Environment variable format:
- Prefix: ``ROWTRAIL_``
- Nested keys: ``__`` separator
- Example: ``ROWTRAIL_COMPONENTS__CAPTURE__SKIP_IF_MISSING=true``
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from pydantic_settings import SettingsConfigDict

from .models import DEFAULT_CONFIG_PATH, RowtrailSettings


def load_settings(
    *,
    cli_params: Mapping[str, Any] | None = None,
    config_path: str | Path | None = None,
) -> RowtrailSettings:
    """Load settings by applying the standard rowtrail precedence cascade."""
    resolved_path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    init_values = _as_plain_dict(cli_params) if cli_params is not None else {}

    class _ResolvedSettings(RowtrailSettings):
        model_config = SettingsConfigDict(
            yaml_file=resolved_path,
            yaml_file_encoding="utf-8",
        )

    return _ResolvedSettings(**init_values)


def _as_plain_dict(value: Mapping[str, Any]) -> dict[str, Any]:
    """Copy a mapping into plain ``dict`` values recursively."""
    output: dict[str, Any] = {}
    for key, subvalue in value.items():
        if isinstance(subvalue, Mapping):
            output[str(key)] = _as_plain_dict(subvalue)
        else:
            output[str(key)] = subvalue
    return output

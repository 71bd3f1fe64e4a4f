"""YAML configuration file support.

This module loads a YAML file whose keys mirror ``LoaderConfig`` fields
and overlays it on a base config, so deployments can check in one file
instead of exporting many environment variables.
"""

from __future__ import annotations

from dataclasses import fields, replace
from pathlib import Path
from typing import Mapping, cast

from core.config import LoaderConfig, RetryOptions
from core.errors import DwdConfigError, DwdDependencyError

_PATH_FIELDS = ("data_dir",)
_INT_FIELDS = ("max_workers", "batch_size")
_BOOL_FIELDS = ("truncate_before_load",)
_OPTIONAL_STR_FIELDS = (
    "remote_uri",
    "s3_region",
    "s3_profile",
    "s3_endpoint_url",
    "isolation_level",
)
_STR_FIELDS = ("database_url", "station_file_name", "text_encoding")


def load_config_file(config_path: str, base: LoaderConfig) -> LoaderConfig:
    """Overlay a YAML config file on a base config.

    Args:
        config_path: File path to YAML config.
        base: Config providing values for keys the file omits.

    Returns:
        Merged and validated config.

    Raises:
        DwdDependencyError: If PyYAML is unavailable.
        DwdConfigError: If the file is missing, malformed or has unknown keys.
    """
    payload = _load_yaml_payload(config_path)
    mapping = _expect_mapping(payload, "config root")
    return apply_config_mapping(base, mapping)


def apply_config_mapping(base: LoaderConfig, mapping: Mapping[str, object]) -> LoaderConfig:
    """Overlay a parsed mapping on a base config.

    Args:
        base: Base config.
        mapping: Keys named after ``LoaderConfig`` fields.

    Returns:
        Merged config.

    Raises:
        DwdConfigError: If a key is unknown or a value has the wrong type.
    """
    known_fields = {config_field.name for config_field in fields(LoaderConfig)}
    unknown_keys = sorted(set(mapping) - known_fields)
    if unknown_keys:
        raise DwdConfigError(
            f"Unknown config keys: {', '.join(unknown_keys)}. "
            f"Supported keys: {', '.join(sorted(known_fields))}."
        )
    overrides: dict[str, object] = {}
    for key, value in mapping.items():
        overrides[key] = _coerce_value(key, value, base)
    return replace(base, **overrides)


def _coerce_value(key: str, value: object, base: LoaderConfig) -> object:
    if key in _PATH_FIELDS:
        return Path(_expect_str(value, key)).expanduser().resolve()
    if key in _INT_FIELDS:
        return _expect_int(value, key)
    if key in _BOOL_FIELDS:
        if not isinstance(value, bool):
            raise DwdConfigError(f"Invalid config value for '{key}': expected true or false.")
        return value
    if key in _OPTIONAL_STR_FIELDS:
        return None if value is None else _expect_str(value, key)
    if key in _STR_FIELDS:
        return _expect_str(value, key)
    if key == "measurement_months":
        return _parse_month_list(value)
    return _parse_retry(value, base.retry)


def _parse_month_list(value: object) -> tuple[int, ...]:
    if value is None:
        return ()
    if isinstance(value, int) and not isinstance(value, bool):
        return (value,)
    if not isinstance(value, list):
        raise DwdConfigError(
            "Invalid config value for 'measurement_months': expected a month or a list of months."
        )
    return tuple(sorted({_expect_int(month, "measurement_months") for month in value}))


def _parse_retry(value: object, base: RetryOptions) -> RetryOptions:
    mapping = _expect_mapping(value, "retry")
    known_keys = {retry_field.name for retry_field in fields(RetryOptions)}
    unknown_keys = sorted(set(mapping) - known_keys)
    if unknown_keys:
        raise DwdConfigError(
            f"Unknown retry keys: {', '.join(unknown_keys)}. "
            f"Supported keys: {', '.join(sorted(known_keys))}."
        )
    overrides: dict[str, object] = {}
    for key, raw_value in mapping.items():
        if key == "max_attempts":
            overrides[key] = _expect_int(raw_value, f"retry.{key}")
        else:
            overrides[key] = _expect_number(raw_value, f"retry.{key}")
    return replace(base, **overrides)


def _load_yaml_payload(config_path: str) -> object:
    try:
        import yaml  # type: ignore[import-untyped]
    except ImportError as error:  # pragma: no cover - dependency failure
        raise DwdDependencyError(
            "YAML config support requires PyYAML. Install with 'pip install pyyaml'."
        ) from error
    config_file = Path(config_path).expanduser().resolve()
    if not config_file.exists():
        raise DwdConfigError(
            f"Config file does not exist at {config_file}. Provide a valid YAML file path."
        )
    try:
        payload = cast(object, yaml.safe_load(config_file.read_text(encoding="utf-8")))
    except OSError as error:
        raise DwdConfigError(
            f"Failed to read config at {config_file}: {error}. Check file permissions and retry."
        ) from error
    except yaml.YAMLError as error:
        raise DwdConfigError(
            f"Failed to parse YAML config at {config_file}: {error}. Fix YAML syntax and retry."
        ) from error
    if payload is None:
        return {}
    return payload


def _expect_mapping(value: object, context: str) -> Mapping[str, object]:
    if isinstance(value, Mapping):
        normalized_mapping = {}
        for key, payload in value.items():
            if not isinstance(key, str):
                raise DwdConfigError(
                    f"Invalid {context}: expected string keys, got {type(key).__name__}."
                )
            normalized_mapping[key] = payload
        return normalized_mapping
    raise DwdConfigError(
        f"Invalid {context}: expected object mapping, got {type(value).__name__}."
    )


def _expect_str(value: object, key: str) -> str:
    if isinstance(value, str) and value.strip():
        return value
    raise DwdConfigError(f"Invalid config value for '{key}': expected non-empty string.")


def _expect_int(value: object, key: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    raise DwdConfigError(
        f"Invalid config value for '{key}': expected integer, got {type(value).__name__}."
    )


def _expect_number(value: object, key: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise DwdConfigError(
        f"Invalid config value for '{key}': expected number, got {type(value).__name__}."
    )

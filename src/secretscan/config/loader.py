"""Load, merge and validate configuration from .secretscan.toml and env vars."""

from __future__ import annotations

import dataclasses
import logging
import os
import re
import sys
from pathlib import Path
from typing import Any, Dict, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from secretscan.config.schema import (
    SEVERITIES,
    AllowlistConfig,
    ContextConfig,
    DetectorsConfig,
    EntropyConfig,
    PatternsConfig,
    PerformanceConfig,
    ScanConfig,
    SecretScanConfig,
    TestFilesConfig,
)

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".secretscan.toml"


class ConfigError(Exception):
    """Raised when config is malformed, unreadable or fails validation."""

    def __init__(self, message: str, field_name: Optional[str] = None) -> None:
        self.field_name = field_name
        super().__init__(f"{field_name}: {message}" if field_name else message)


def find_config_file(root: Path, override: Optional[str] = None) -> Optional[Path]:
    """Locate the config file. *override* takes precedence."""
    if override:
        p = Path(override)
        if not p.is_file():
            raise ConfigError(f"Config file not found: {override}")
        return p
    candidate = root / CONFIG_FILENAME
    return candidate if candidate.is_file() else None


def _parse_toml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc


def _type_name(value: Any) -> str:
    return {bool: "boolean", int: "integer", float: "number", str: "string", list: "array"}.get(
        type(value), type(value).__name__
    )


def _coerce(value: Any, default: Any, field_name: str) -> Any:
    """Check *value* against the type of the field's default value."""
    if isinstance(default, bool):
        ok = isinstance(value, bool)
    elif isinstance(default, float):
        # TOML integers are accepted where a float is expected
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
        if ok:
            value = float(value)
    elif isinstance(default, int):
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif isinstance(default, list):
        if not isinstance(value, list):
            raise ConfigError(f"expected array, got {_type_name(value)}", field_name)
        item_default = default[0] if default else ""
        return [_coerce(v, item_default, f"{field_name}[{i}]") for i, v in enumerate(value)]
    else:
        ok = isinstance(value, type(default))
    if not ok:
        raise ConfigError(f"expected {_type_name(default)}, got {_type_name(value)}", field_name)
    return value


def _build_section(data: Dict[str, Any], cls: type, section: str):
    """Build a dataclass from a TOML section dict, ignoring unknown keys.

    Values are checked against the type of each field's default, so a
    wrong-typed value is reported as a ConfigError naming ``section.key``.
    """
    valid_fields = {f.name for f in dataclasses.fields(cls)}
    raw = data.get(section, {})
    if not isinstance(raw, dict):
        raise ConfigError("expected a table", field_name=section)
    unknown = set(raw) - valid_fields
    if unknown:
        logger.warning("Ignoring unknown keys in [%s]: %s", section, ", ".join(sorted(unknown)))
    defaults = cls()
    filtered = {
        k: _coerce(v, getattr(defaults, k), f"{section}.{k}")
        for k, v in raw.items()
        if k in valid_fields
    }
    return cls(**filtered)


def _merge_env_overrides(cfg: SecretScanConfig) -> None:
    """Apply SECRETSCAN_* environment variable overrides."""
    if val := os.environ.get("SECRETSCAN_FAIL_ON"):
        if val in SEVERITIES:
            cfg.scan.fail_on = val  # type: ignore[assignment]
    if val := os.environ.get("SECRETSCAN_ENTROPY_THRESHOLD"):
        try:
            cfg.entropy.threshold = float(val)
        except ValueError:
            pass
    if val := os.environ.get("SECRETSCAN_MAX_FILE_SIZE"):
        try:
            cfg.scan.max_file_size = int(val)
        except ValueError:
            pass
    if val := os.environ.get("SECRETSCAN_MAX_WORKERS"):
        try:
            cfg.performance.max_workers = int(val)
        except ValueError:
            pass
    if val := os.environ.get("SECRETSCAN_DISABLE_RULES"):
        cfg.patterns.disable.extend(r.strip() for r in val.split(",") if r.strip())


def validate_config(cfg: SecretScanConfig) -> None:
    """Fail fast on invalid settings. Raises ConfigError naming the field."""
    ent = cfg.entropy
    if not 0.0 <= ent.threshold <= 8.0:
        raise ConfigError(f"must be within [0, 8], got {ent.threshold}", "entropy.threshold")
    if ent.min_length <= 0:
        raise ConfigError(f"must be positive, got {ent.min_length}", "entropy.min_length")
    if ent.max_length < ent.min_length:
        raise ConfigError(
            f"must be >= entropy.min_length ({ent.min_length}), got {ent.max_length}",
            "entropy.max_length",
        )
    if not ent.window_sizes or any(w <= 0 for w in ent.window_sizes):
        raise ConfigError("must be a non-empty list of positive sizes", "entropy.window_sizes")
    if not 0.0 <= cfg.test_files.factor <= 1.0:
        raise ConfigError(f"must be within [0, 1], got {cfg.test_files.factor}", "test_files.factor")
    if not 0.0 <= cfg.scan.min_confidence <= 1.0:
        raise ConfigError(
            f"must be within [0, 1], got {cfg.scan.min_confidence}", "scan.min_confidence"
        )
    if cfg.scan.max_file_size <= 0:
        raise ConfigError(f"must be positive, got {cfg.scan.max_file_size}", "scan.max_file_size")
    if cfg.scan.fail_on not in SEVERITIES:
        raise ConfigError(f"unknown severity {cfg.scan.fail_on!r}", "scan.fail_on")
    if cfg.performance.max_workers < 1:
        raise ConfigError(
            f"must be at least 1, got {cfg.performance.max_workers}", "performance.max_workers"
        )
    if cfg.performance.file_timeout_seconds < 0:
        raise ConfigError("must not be negative", "performance.file_timeout_seconds")
    for i, regex in enumerate(cfg.patterns.custom):
        _check_regex(regex, f"patterns.custom[{i}]")
    for section in ("values", "lines"):
        for i, regex in enumerate(getattr(cfg.allowlist, section)):
            _check_regex(regex, f"allowlist.{section}[{i}]")


def _check_regex(regex: str, field_name: str) -> None:
    try:
        re.compile(regex)
    except re.error as exc:
        raise ConfigError(f"invalid regex {regex!r}: {exc}", field_name) from exc


def load_config(
    root: Path,
    config_override: Optional[str] = None,
) -> SecretScanConfig:
    """Load, validate, and return a SecretScanConfig."""
    config_path = find_config_file(root, config_override)

    if config_path is None:
        cfg = SecretScanConfig()
    else:
        raw = _parse_toml(config_path)
        try:
            cfg = SecretScanConfig(
                version=raw.get("version", "1.0"),
                scan=_build_section(raw, ScanConfig, "scan"),
                detectors=_build_section(raw, DetectorsConfig, "detectors"),
                entropy=_build_section(raw, EntropyConfig, "entropy"),
                patterns=_build_section(raw, PatternsConfig, "patterns"),
                context=_build_section(raw, ContextConfig, "context"),
                test_files=_build_section(raw, TestFilesConfig, "test_files"),
                performance=_build_section(raw, PerformanceConfig, "performance"),
                allowlist=_build_section(raw, AllowlistConfig, "allowlist"),
            )
        except TypeError as exc:
            raise ConfigError(f"Invalid configuration in {config_path}: {exc}") from exc
        logger.info("Loaded configuration from %s", config_path)

    _merge_env_overrides(cfg)
    validate_config(cfg)
    return cfg

"""Configuration loading, schema, and defaults."""

from secretscan.config.loader import ConfigError, load_config, validate_config
from secretscan.config.schema import SecretScanConfig, Severity, severity_at_or_above

__all__ = [
    "ConfigError",
    "SecretScanConfig",
    "Severity",
    "load_config",
    "severity_at_or_above",
    "validate_config",
]

"""Rule catalog: models, registry, built-in rules."""

from secretscan.rules.models import Rule, SecretType, validate_rule
from secretscan.rules.registry import RuleRegistry, build_registry

__all__ = ["Rule", "RuleRegistry", "SecretType", "build_registry", "validate_rule"]

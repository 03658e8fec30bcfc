"""Rule registry: loads built-in and custom rules, applies config filters."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

import yaml

from secretscan.config.loader import ConfigError
from secretscan.config.schema import SEVERITIES, SecretScanConfig
from secretscan.rules.models import Rule, SecretType

logger = logging.getLogger(__name__)

CUSTOM_CATEGORY = "custom"

_SLUG_RE = re.compile(r"[^A-Za-z0-9]+")


class RuleRegistry:
    """Central store for all detection rules.

    Rules are immutable; enablement lives in the registry so one rule object
    can be shared by registries built from different configs.
    """

    def __init__(self) -> None:
        self._rules: Dict[str, Rule] = {}
        self._disabled: Set[str] = set()

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules

    # ---- registration ----

    def register(self, rule: Rule) -> None:
        if rule.id in self._rules:
            logger.debug("Rule %s replaced", rule.id)
        self._rules[rule.id] = rule

    def register_many(self, rules: List[Rule]) -> None:
        for r in rules:
            self.register(r)

    def add_custom_pattern(self, regex: str, index: Optional[int] = None) -> Rule:
        """Wrap a bare regex from config as a medium-severity custom rule."""
        n = index if index is not None else self._next_custom_index()
        if f"CUSTOM_PATTERN_{n}" in self._rules:
            n = self._next_custom_index()
        rule = Rule(
            id=f"CUSTOM_PATTERN_{n}",
            name=f"Custom Pattern {n}",
            description=f"User-defined pattern: {regex}",
            category=CUSTOM_CATEGORY,
            secret_type=SecretType.UNKNOWN,
            severity="medium",
            patterns=[regex],
        )
        self.register(rule)
        return rule

    def _next_custom_index(self) -> int:
        n = 1
        while f"CUSTOM_PATTERN_{n}" in self._rules:
            n += 1
        return n

    # ---- queries ----

    @property
    def all_rules(self) -> List[Rule]:
        return list(self._rules.values())

    def get(self, rule_id: str) -> Optional[Rule]:
        return self._rules.get(rule_id)

    def is_enabled(self, rule_id: str) -> bool:
        return rule_id in self._rules and rule_id not in self._disabled

    def enabled_rules(self) -> List[Rule]:
        return [r for r in self._rules.values() if r.id not in self._disabled]

    def categories(self) -> List[str]:
        return sorted({r.category for r in self._rules.values()})

    # ---- config filtering ----

    def apply_config(self, config: SecretScanConfig) -> None:
        """Enable / disable rules based on the [patterns] section."""
        pats = config.patterns
        enable_list = set(pats.enable)
        disable_list = set(pats.disable)
        off_categories = set(pats.disabled_categories)

        for name in sorted((enable_list | disable_list) - set(self._rules)):
            logger.warning("Unknown rule id in [patterns]: %s", name)

        self._disabled.clear()
        for rule in self._rules.values():
            # If an explicit enable-list exists, only those are enabled
            if enable_list and rule.id not in enable_list:
                self._disabled.add(rule.id)
            # Disable list and categories always take precedence
            if rule.id in disable_list or rule.category in off_categories:
                self._disabled.add(rule.id)

    # ---- custom rule loading ----

    def load_custom_rules(self, path: Path) -> int:
        """Load a YAML custom-pattern file. Returns count loaded.

        Entries that are missing a regex or whose regex does not compile are
        logged and skipped, as are entries whose id is already registered:
        custom rules extend the catalog and never replace a rule in it. An
        unreadable or non-YAML file is a ConfigError.
        """
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as exc:
            raise ConfigError(f"Cannot read {path}: {exc}", "patterns.files") from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}", "patterns.files") from exc

        if data is None:
            return 0
        if isinstance(data, dict):
            data = data.get("patterns", [])
        if not isinstance(data, list):
            raise ConfigError(f"{path}: expected a 'patterns' list", "patterns.files")

        count = 0
        for i, entry in enumerate(data):
            try:
                rule = _rule_from_entry(entry, i)
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping custom pattern #%d in %s: %s", i + 1, path, exc)
                continue
            if rule.id in self._rules:
                logger.warning(
                    "Custom rule %s in %s collides with an existing rule id; not loaded",
                    rule.id,
                    path,
                )
                continue
            self.register(rule)
            count += 1
        logger.info("Loaded %d custom pattern(s) from %s", count, path)
        return count


def _rule_from_entry(entry: Any, index: int) -> Rule:
    if not isinstance(entry, dict):
        raise TypeError("entry is not a mapping")
    regex = entry.get("regex") or entry.get("pattern")
    if not regex or not isinstance(regex, str):
        raise ValueError("missing 'regex'")
    try:
        re.compile(regex)
    except re.error as exc:
        raise ValueError(f"invalid regex {regex!r}: {exc}") from exc

    name = str(entry.get("name") or f"Custom Pattern {index + 1}")
    rule_id = entry.get("id") or _SLUG_RE.sub("_", name).strip("_").upper()
    # "confidence" is accepted as a synonym for severity
    severity = str(entry.get("severity") or entry.get("confidence") or "medium").lower()
    if severity not in SEVERITIES:
        raise ValueError(f"unknown severity {severity!r}")

    return Rule(
        id=str(rule_id),
        name=name,
        description=str(entry.get("description", "")),
        category=str(entry.get("category") or CUSTOM_CATEGORY),
        secret_type=SecretType.from_string(entry.get("secret_type") or entry.get("category")),
        severity=severity,  # type: ignore[arg-type]
        patterns=[regex],
        examples=[str(e) for e in entry.get("examples") or []],
        false_positives=[str(e) for e in entry.get("false_positives") or []],
        tags=[str(t) for t in entry.get("tags") or []],
    )


def build_registry(config: SecretScanConfig, root: Optional[Path] = None) -> RuleRegistry:
    """Create a fully populated, config-filtered rule registry."""
    from secretscan.rules.builtin import ALL_BUILTIN_RULES

    registry = RuleRegistry()
    registry.register_many(ALL_BUILTIN_RULES)

    for i, regex in enumerate(config.patterns.custom, 1):
        registry.add_custom_pattern(regex, i)

    base = root or Path.cwd()
    for name in config.patterns.files:
        path = Path(name)
        registry.load_custom_rules(path if path.is_absolute() else base / path)

    registry.apply_config(config)
    logger.debug(
        "Rule registry ready: %d rules, %d enabled",
        len(registry),
        len(registry.enabled_rules()),
    )
    return registry

"""Rule data model. Patterns are stored as strings and compiled through the matcher cache."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from secretscan.config.schema import Severity


class SecretType(str, Enum):
    API_KEY = "api_key"
    AWS_KEY = "aws_key"
    GOOGLE_KEY = "google_key"
    GITHUB_TOKEN = "github_token"
    SLACK_TOKEN = "slack_token"
    JWT_TOKEN = "jwt_token"
    PASSWORD = "password"
    TOKEN = "token"
    PRIVATE_KEY = "private_key"
    SSH_KEY = "ssh_key"
    CERTIFICATE = "certificate"
    CRYPTO_KEY = "crypto_key"
    DATABASE_URL = "database_url"
    HASH = "hash"
    HIGH_ENTROPY = "high_entropy"
    UNKNOWN = "unknown"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES.get(self, self.value.replace("_", " ").title())

    @classmethod
    def from_string(cls, value: Optional[str]) -> "SecretType":
        if not value:
            return cls.UNKNOWN
        key = value.strip().lower().replace("-", "_")
        try:
            return cls(key)
        except ValueError:
            return _ALIASES.get(key.replace("_", ""), cls.UNKNOWN)


_DISPLAY_NAMES = {
    SecretType.API_KEY: "API Key",
    SecretType.AWS_KEY: "AWS Key",
    SecretType.JWT_TOKEN: "JWT",
    SecretType.SSH_KEY: "SSH Key",
    SecretType.DATABASE_URL: "Database URL",
    SecretType.HIGH_ENTROPY: "High-Entropy String",
}

_ALIASES = {
    "apikey": SecretType.API_KEY,
    "awskey": SecretType.AWS_KEY,
    "googlekey": SecretType.GOOGLE_KEY,
    "githubtoken": SecretType.GITHUB_TOKEN,
    "slacktoken": SecretType.SLACK_TOKEN,
    "jwt": SecretType.JWT_TOKEN,
    "jwttoken": SecretType.JWT_TOKEN,
    "privatekey": SecretType.PRIVATE_KEY,
    "sshkey": SecretType.SSH_KEY,
    "rsakey": SecretType.PRIVATE_KEY,
    "cryptokey": SecretType.CRYPTO_KEY,
    "dburl": SecretType.DATABASE_URL,
    "databaseurl": SecretType.DATABASE_URL,
    "cert": SecretType.CERTIFICATE,
    "apikeys": SecretType.API_KEY,
    "privatekeys": SecretType.PRIVATE_KEY,
    "tokens": SecretType.TOKEN,
    "passwords": SecretType.PASSWORD,
    "database": SecretType.DATABASE_URL,
}


@dataclass(frozen=True)
class Rule:
    """A single detection rule.

    ``patterns`` are raw strings so the rule stays serialisable; the detector
    compiles them through the shared PatternMatcher cache. When a regex has a
    ``secret`` named group, that group is the reported value.

    ``examples`` and ``false_positives`` only feed ``validate_rule``.
    """

    id: str
    name: str
    description: str
    category: str  # cloud | vcs | database | crypto | tokens | generic | custom
    secret_type: SecretType
    severity: Severity
    patterns: Tuple[str, ...] = ()
    examples: Tuple[str, ...] = field(default=(), compare=False)
    false_positives: Tuple[str, ...] = field(default=(), compare=False)
    tags: Tuple[str, ...] = field(default=(), compare=False)

    def __post_init__(self) -> None:
        # accept lists from YAML / callers
        object.__setattr__(self, "patterns", tuple(self.patterns))
        object.__setattr__(self, "examples", tuple(self.examples))
        object.__setattr__(self, "false_positives", tuple(self.false_positives))
        object.__setattr__(self, "tags", tuple(self.tags))


def validate_rule(rule: Rule) -> List[str]:
    """Check a rule against its own samples. Returns a list of problems."""
    problems: List[str] = []
    if not rule.patterns:
        problems.append(f"{rule.id}: no patterns")
        return problems
    compiled = []
    for regex in rule.patterns:
        try:
            compiled.append(re.compile(regex, re.MULTILINE))
        except re.error as exc:
            problems.append(f"{rule.id}: invalid regex {regex!r}: {exc}")
    if len(compiled) != len(rule.patterns):
        return problems
    for sample in rule.examples:
        if not any(p.search(sample) for p in compiled):
            problems.append(f"{rule.id}: example not matched: {sample!r}")
    for sample in rule.false_positives:
        if any(p.search(sample) for p in compiled):
            problems.append(f"{rule.id}: false positive matched: {sample!r}")
    return problems

"""Built-in rule catalog, aggregated across categories."""

from secretscan.rules.builtin.cloud import ALL_CLOUD_RULES
from secretscan.rules.builtin.crypto import ALL_CRYPTO_RULES
from secretscan.rules.builtin.database import ALL_DATABASE_RULES
from secretscan.rules.builtin.generic import ALL_GENERIC_RULES
from secretscan.rules.builtin.tokens import ALL_TOKEN_RULES
from secretscan.rules.builtin.vcs import ALL_VCS_RULES
from secretscan.rules.models import Rule

ALL_BUILTIN_RULES: list[Rule] = [
    *ALL_CLOUD_RULES,
    *ALL_VCS_RULES,
    *ALL_DATABASE_RULES,
    *ALL_CRYPTO_RULES,
    *ALL_TOKEN_RULES,
    *ALL_GENERIC_RULES,
]

__all__ = ["ALL_BUILTIN_RULES"]

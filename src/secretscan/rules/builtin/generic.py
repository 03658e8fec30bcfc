"""Keyword-driven assignments: api keys, secrets and passwords set to literals."""

from secretscan.rules.models import Rule, SecretType

GENERIC_API_KEY = Rule(
    id="GENERIC_API_KEY",
    name="Generic API Key",
    description="Variable named like an API key or client secret assigned a quoted literal.",
    category="generic",
    secret_type=SecretType.API_KEY,
    severity="medium",
    patterns=[
        r"(?i)\b\w*(?:api[_-]?key|apikey|api[_-]?secret|access[_-]?key|secret[_-]?key"
        r"|client[_-]?secret)\w*[\"']?\s*[:=]\s*[\"'](?P<secret>[A-Za-z0-9_\-+/=.]{16,})[\"']",
    ],
    examples=[
        'api_key = "a8f5f167f44f4964e6c998dee827110c"',
        '"clientSecret": "Zx81kLmQ0pR7sT2uV9wY"',
    ],
    false_positives=[
        'api_key = os.environ["API_KEY"]',
        'apiKey: "${API_KEY}"',
    ],
)

GENERIC_SECRET = Rule(
    id="GENERIC_SECRET",
    name="Generic Secret",
    description="Variable named like a secret or token assigned a quoted literal.",
    category="generic",
    secret_type=SecretType.TOKEN,
    severity="medium",
    patterns=[
        r"(?i)\b\w*(?:secret|token|auth[_-]?key|private[_-]?key)\w*[\"']?\s*[:=]\s*[\"']"
        r"(?!\$\{)(?P<secret>[^\"'\s]{12,})[\"']",
    ],
    examples=['auth_token = "9f8e7d6c5b4a39281706"'],
    false_positives=['token = "${TOKEN}"', 'secret = "short"'],
)

HARDCODED_PASSWORD = Rule(
    id="HARDCODED_PASSWORD",
    name="Hardcoded Password",
    description="Variable named like a password assigned a quoted literal.",
    category="generic",
    secret_type=SecretType.PASSWORD,
    severity="medium",
    patterns=[
        r"(?i)\b\w*(?:password|passwd|pwd)\w*[\"']?\s*[:=]\s*[\"']"
        r"(?!\$\{)(?P<secret>[^\"'\s]{8,})[\"']",
    ],
    examples=['password = "hunter2hunter2"', "'db_passwd': 'Pr0dPassw0rd'"],
    false_positives=[
        'password = ""',
        'pwd = "short"',
        'password = "${PASSWORD}"',
        'if password == "abcdefgh12":',
    ],
)

GENERIC_PASSWORD_WEAK = Rule(
    id="GENERIC_PASSWORD_WEAK",
    name="Unquoted Password Value",
    description="Config-style key=value line whose key names a password or secret.",
    category="generic",
    secret_type=SecretType.PASSWORD,
    severity="low",
    patterns=[
        r"(?im)^\s*[\w.-]*(?:password|passwd|pwd|secret)[\w.-]*\s*[:=]\s*"
        r"(?!\$\{)(?P<secret>[^\s\"'#;,()]{8,})\s*$",
    ],
    examples=["db.password: changeme123", "SECRET=letmein99"],
    false_positives=[
        "password = ${PASSWORD}",
        "password = get_password()",
        "password:",
    ],
)

ALL_GENERIC_RULES = [
    GENERIC_API_KEY,
    GENERIC_SECRET,
    HARDCODED_PASSWORD,
    GENERIC_PASSWORD_WEAK,
]

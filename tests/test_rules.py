"""Tests for rule models, built-in rule quality and the registry."""

import logging
import textwrap
from dataclasses import FrozenInstanceError

import pytest

from secretscan.config.loader import ConfigError
from secretscan.config.schema import SEVERITIES, SecretScanConfig
from secretscan.rules.builtin import ALL_BUILTIN_RULES
from secretscan.rules.models import Rule, SecretType, validate_rule
from secretscan.rules.registry import RuleRegistry, build_registry


def _rule(**overrides) -> Rule:
    fields = dict(
        id="TEST_RULE",
        name="Test Rule",
        description="",
        category="custom",
        secret_type=SecretType.UNKNOWN,
        severity="medium",
        patterns=[r"tok_[a-z]{8}"],
    )
    fields.update(overrides)
    return Rule(**fields)


class TestBuiltinRules:
    @pytest.mark.parametrize("rule", ALL_BUILTIN_RULES, ids=lambda r: r.id)
    def test_rule_validates(self, rule):
        assert validate_rule(rule) == []

    @pytest.mark.parametrize("rule", ALL_BUILTIN_RULES, ids=lambda r: r.id)
    def test_rule_has_examples(self, rule):
        assert rule.examples, f"{rule.id} has no examples"
        assert rule.severity in SEVERITIES

    def test_unique_ids(self):
        ids = [r.id for r in ALL_BUILTIN_RULES]
        assert len(ids) == len(set(ids))

    def test_categories(self):
        categories = {r.category for r in ALL_BUILTIN_RULES}
        assert categories == {"cloud", "vcs", "database", "crypto", "tokens", "generic"}

    @pytest.mark.parametrize(
        "rule_id, severity",
        [
            ("AWS_ACCESS_KEY", "high"),
            ("GITHUB_TOKEN", "high"),
            ("PRIVATE_KEY", "critical"),
            ("DATABASE_URL_WITH_CREDENTIALS", "critical"),
            ("JWT_TOKEN", "medium"),
            ("CERTIFICATE", "medium"),
            ("GENERIC_PASSWORD_WEAK", "low"),
        ],
    )
    def test_severity(self, rule_id, severity):
        registry = build_registry(SecretScanConfig())
        assert registry.get(rule_id).severity == severity


class TestRuleModel:
    def test_frozen(self):
        rule = _rule()
        with pytest.raises(FrozenInstanceError):
            rule.severity = "high"

    def test_lists_become_tuples(self):
        rule = _rule(examples=["tok_abcdefgh"], tags=["x"])
        assert rule.patterns == (r"tok_[a-z]{8}",)
        assert rule.examples == ("tok_abcdefgh",)
        assert rule.tags == ("x",)

    def test_validate_reports_problems(self):
        rule = _rule(examples=["nothing here"], false_positives=["tok_abcdefgh"])
        problems = validate_rule(rule)
        assert len(problems) == 2
        assert "example not matched" in problems[0]
        assert "false positive matched" in problems[1]

    def test_validate_invalid_regex(self):
        problems = validate_rule(_rule(patterns=["(oops"]))
        assert len(problems) == 1
        assert "invalid regex" in problems[0]

    def test_validate_no_patterns(self):
        assert validate_rule(_rule(patterns=[])) == ["TEST_RULE: no patterns"]


class TestSecretType:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("aws_key", SecretType.AWS_KEY),
            ("API-KEY", SecretType.API_KEY),
            ("ApiKeys", SecretType.API_KEY),
            ("jwt", SecretType.JWT_TOKEN),
            ("passwords", SecretType.PASSWORD),
            ("database", SecretType.DATABASE_URL),
            ("something else", SecretType.UNKNOWN),
            (None, SecretType.UNKNOWN),
            ("", SecretType.UNKNOWN),
        ],
    )
    def test_from_string(self, value, expected):
        assert SecretType.from_string(value) is expected

    def test_display_name(self):
        assert SecretType.AWS_KEY.display_name == "AWS Key"
        assert SecretType.PRIVATE_KEY.display_name == "Private Key"


class TestRegistry:
    def test_register_and_get(self):
        registry = RuleRegistry()
        registry.register(_rule())
        assert "TEST_RULE" in registry
        assert len(registry) == 1
        assert registry.get("TEST_RULE").name == "Test Rule"
        assert registry.get("MISSING") is None

    def test_register_replaces_same_id(self):
        registry = RuleRegistry()
        registry.register(_rule())
        registry.register(_rule(name="Replaced"))
        assert len(registry) == 1
        assert registry.get("TEST_RULE").name == "Replaced"

    def test_disable_list(self):
        config = SecretScanConfig()
        config.patterns.disable = ["AWS_ACCESS_KEY"]
        registry = build_registry(config)
        assert "AWS_ACCESS_KEY" in registry
        assert not registry.is_enabled("AWS_ACCESS_KEY")
        assert registry.is_enabled("GITHUB_TOKEN")

    def test_enable_list_restricts(self):
        config = SecretScanConfig()
        config.patterns.enable = ["AWS_ACCESS_KEY", "GITHUB_TOKEN"]
        registry = build_registry(config)
        assert {r.id for r in registry.enabled_rules()} == {"AWS_ACCESS_KEY", "GITHUB_TOKEN"}

    def test_disable_wins_over_enable(self):
        config = SecretScanConfig()
        config.patterns.enable = ["AWS_ACCESS_KEY"]
        config.patterns.disable = ["AWS_ACCESS_KEY"]
        registry = build_registry(config)
        assert registry.enabled_rules() == []

    def test_disabled_categories(self):
        config = SecretScanConfig()
        config.patterns.disabled_categories = ["generic"]
        registry = build_registry(config)
        enabled = registry.enabled_rules()
        assert enabled
        assert all(r.category != "generic" for r in enabled)

    def test_unknown_rule_id_warns(self, caplog):
        config = SecretScanConfig()
        config.patterns.disable = ["NO_SUCH_RULE"]
        with caplog.at_level(logging.WARNING, logger="secretscan.rules.registry"):
            build_registry(config)
        assert "NO_SUCH_RULE" in caplog.text

    def test_add_custom_pattern(self):
        registry = RuleRegistry()
        first = registry.add_custom_pattern(r"COMP_[A-Za-z0-9]{32}")
        second = registry.add_custom_pattern(r"ACME_[0-9]{10}")
        assert first.id == "CUSTOM_PATTERN_1"
        assert second.id == "CUSTOM_PATTERN_2"
        assert first.severity == "medium"
        assert first.category == "custom"
        assert first.secret_type is SecretType.UNKNOWN

    def test_categories(self):
        registry = build_registry(SecretScanConfig())
        assert registry.categories() == sorted(
            ["cloud", "vcs", "database", "crypto", "tokens", "generic"]
        )


class TestCustomRuleFiles:
    def test_load_yaml(self, tmp_path):
        path = tmp_path / "patterns.yml"
        path.write_text(textwrap.dedent("""\
            patterns:
              - name: Acme API Key
                regex: "acme_[a-z0-9]{24}"
                confidence: high
                category: api_keys
                examples: ["acme_abcdefghijklmnopqrstuvwx"]
              - name: Internal Token
                id: INTERNAL_TOKEN
                pattern: "itk-[0-9]{12}"
                severity: critical
                tags: [internal]
        """))
        registry = RuleRegistry()
        assert registry.load_custom_rules(path) == 2

        acme = registry.get("ACME_API_KEY")
        assert acme.severity == "high"
        assert acme.category == "api_keys"
        assert acme.secret_type is SecretType.API_KEY
        assert validate_rule(acme) == []

        internal = registry.get("INTERNAL_TOKEN")
        assert internal.severity == "critical"
        assert internal.category == "custom"
        assert internal.tags == ("internal",)

    def test_top_level_list(self, tmp_path):
        path = tmp_path / "patterns.yaml"
        path.write_text('- name: One\n  regex: "one_[0-9]{6}"\n')
        registry = RuleRegistry()
        assert registry.load_custom_rules(path) == 1
        assert "ONE" in registry

    def test_bad_entries_skipped(self, tmp_path, caplog):
        path = tmp_path / "patterns.yml"
        path.write_text(textwrap.dedent("""\
            patterns:
              - name: No Regex
              - name: Broken
                regex: "(unclosed"
              - name: Bad Severity
                regex: "x_[0-9]+"
                severity: extreme
              - just a string
              - name: Good
                regex: "good_[0-9]{4}"
        """))
        registry = RuleRegistry()
        with caplog.at_level(logging.WARNING, logger="secretscan.rules.registry"):
            assert registry.load_custom_rules(path) == 1
        assert "GOOD" in registry
        assert caplog.text.count("Skipping custom pattern") == 4

    def test_empty_file(self, tmp_path):
        path = tmp_path / "patterns.yml"
        path.write_text("")
        assert RuleRegistry().load_custom_rules(path) == 0

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "patterns.yml"
        path.write_text("patterns: [unclosed\n")
        with pytest.raises(ConfigError) as exc_info:
            RuleRegistry().load_custom_rules(path)
        assert exc_info.value.field_name == "patterns.files"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            RuleRegistry().load_custom_rules(tmp_path / "nope.yml")

    def test_not_a_list(self, tmp_path):
        path = tmp_path / "patterns.yml"
        path.write_text("patterns: 42\n")
        with pytest.raises(ConfigError):
            RuleRegistry().load_custom_rules(path)


class TestBuildRegistry:
    def test_builtins_enabled_by_default(self):
        registry = build_registry(SecretScanConfig())
        assert len(registry) == len(ALL_BUILTIN_RULES)
        assert len(registry.enabled_rules()) == len(ALL_BUILTIN_RULES)

    def test_config_custom_patterns(self):
        config = SecretScanConfig()
        config.patterns.custom = [r"COMP_[A-Za-z0-9]{32}"]
        registry = build_registry(config)
        assert registry.is_enabled("CUSTOM_PATTERN_1")
        assert registry.get("CUSTOM_PATTERN_1").patterns == (r"COMP_[A-Za-z0-9]{32}",)

    def test_pattern_files_relative_to_root(self, tmp_path):
        (tmp_path / "rules").mkdir()
        (tmp_path / "rules" / "extra.yml").write_text(
            'patterns:\n  - name: Extra Key\n    regex: "xk_[0-9]{8}"\n'
        )
        config = SecretScanConfig()
        config.patterns.files = ["rules/extra.yml"]
        registry = build_registry(config, tmp_path)
        assert registry.is_enabled("EXTRA_KEY")

    def test_file_rule_cannot_replace_builtin(self, tmp_path, caplog):
        (tmp_path / "extra.yml").write_text(textwrap.dedent("""\
            patterns:
              - name: AWS Access Key
                regex: "zzz_never_matches_zzz"
                severity: low
              - name: Shadow
                id: GITHUB_TOKEN
                regex: "zzz_never_matches_zzz"
        """))
        builtin = build_registry(SecretScanConfig()).get("AWS_ACCESS_KEY")
        config = SecretScanConfig()
        config.patterns.files = ["extra.yml"]
        with caplog.at_level(logging.WARNING, logger="secretscan.rules.registry"):
            registry = build_registry(config, tmp_path)

        aws = registry.get("AWS_ACCESS_KEY")
        assert aws == builtin
        assert aws.category == "cloud"
        assert aws.severity == "high"
        assert "zzz_never_matches_zzz" not in aws.patterns
        assert registry.get("GITHUB_TOKEN").category == "vcs"
        assert len(registry) == len(ALL_BUILTIN_RULES)
        assert "AWS_ACCESS_KEY" in caplog.text
        assert "collides with an existing rule id" in caplog.text

    def test_file_rule_cannot_replace_config_custom_pattern(self, tmp_path):
        (tmp_path / "extra.yml").write_text(
            'patterns:\n  - name: Custom Pattern 1\n    regex: "zzz_never_matches_zzz"\n'
        )
        config = SecretScanConfig()
        config.patterns.custom = [r"COMP_[A-Za-z0-9]{32}"]
        config.patterns.files = ["extra.yml"]
        registry = build_registry(config, tmp_path)
        assert registry.get("CUSTOM_PATTERN_1").patterns == (r"COMP_[A-Za-z0-9]{32}",)
        assert len(registry) == len(ALL_BUILTIN_RULES) + 1

    def test_custom_pattern_index_never_reused(self):
        registry = RuleRegistry()
        registry.add_custom_pattern(r"COMP_[A-Za-z0-9]{32}", 1)
        second = registry.add_custom_pattern(r"ACME_[0-9]{10}", 1)
        assert second.id == "CUSTOM_PATTERN_2"
        assert registry.get("CUSTOM_PATTERN_1").patterns == (r"COMP_[A-Za-z0-9]{32}",)

"""Rules package."""

from __future__ import annotations

from importlib import resources
from pathlib import Path

import yaml

from diff_sense.config import RulesConfig
from diff_sense.errors import RuleConfigError
from diff_sense.logging import get_logger
from diff_sense.rules.denylist import NON_VERSIONING_PATTERNS, non_versioning_patterns
from diff_sense.rules.engine import RulesEngine
from diff_sense.rules.schema import Rule, RuleSet, load_rules_file, parse_rules

DEFAULT_RULES_RESOURCE = "default_rules.yaml"

logger = get_logger("rules")


def load_default_rules() -> tuple[Rule, ...]:
    text = resources.files(__name__).joinpath(DEFAULT_RULES_RESOURCE).read_text(encoding="utf-8")
    try:
        raw = yaml.safe_load(text) or []
    except yaml.YAMLError as exc:
        raise RuleConfigError(f"invalid shipped rules: {exc}") from exc
    return parse_rules(raw, source="defaults")


def load_rule_set(config: RulesConfig | None = None, repo: Path | None = None) -> RuleSet:
    """Build the ordered RuleSet for one run.

    Custom rules (inline tables first, then the rules file) come before the
    shipped defaults unless ``replace_defaults`` drops the defaults entirely.
    Raises RuleConfigError before any file is processed.
    """
    config = config or RulesConfig()
    custom: list[Rule] = []
    if config.custom_rules:
        custom.extend(parse_rules(list(config.custom_rules), source="config"))
    if config.custom_rules_path:
        path = Path(config.custom_rules_path)
        if not path.is_absolute() and repo is not None:
            path = repo / path
        custom.extend(parse_rules(load_rules_file(path), source=str(path)))

    custom_ids = [rule.id for rule in custom]
    duplicates = sorted({rule_id for rule_id in custom_ids if custom_ids.count(rule_id) > 1})
    if duplicates:
        raise RuleConfigError(f"duplicate custom rule ids: {', '.join(duplicates)}")

    if config.replace_defaults:
        if not custom:
            raise RuleConfigError("replace_defaults is set but no custom rules are configured")
        rules = tuple(custom)
    else:
        overridden = set(custom_ids)
        defaults = tuple(rule for rule in load_default_rules() if rule.id not in overridden)
        rules = tuple(custom) + defaults

    rule_set = RuleSet(
        rules=rules,
        non_versioning_patterns=non_versioning_patterns(config.non_versioning_patterns),
    )
    logger.debug("loaded %d rules (%d custom)", len(rule_set), len(custom))
    return rule_set


__all__ = [
    "NON_VERSIONING_PATTERNS",
    "Rule",
    "RuleSet",
    "RulesEngine",
    "load_default_rules",
    "load_rule_set",
]

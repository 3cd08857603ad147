"""Configuration loading for diff-sense."""

from __future__ import annotations

import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

CONFIG_FILENAMES = (".diff-sense.toml", "diff-sense.toml")
PYPROJECT_FILENAME = "pyproject.toml"
PYPROJECT_TOOL_KEYS = ("diff_sense", "diff-sense")
OUTPUT_FORMATS = {"human", "json", "markdown"}
DEFAULT_BREAKING_CHANGE_PATTERNS = ("BREAKING[ -]CHANGE:",)

_TEMPLATE = """\
format = "human"

[analysis]
max_files_to_analyze = 500
file_analysis_timeout = 5000
context_depth = 2

[rules]
# custom_rules = "diff-sense-rules.yaml"
replace_defaults = false
breaking_change_patterns = ["BREAKING[ -]CHANGE:"]
non_versioning_patterns = ["vendor/**"]

# Inline rules are evaluated before the shipped defaults.
[[rules.custom_rules]]
id = "payments-api"
matchPath = "src/payments"
type = "feat"
reason = "payments surface"

[scoring.weights]
lines_of_code = 0.5
semantic_importance = 0.8
breaking_penalty_bonus = 1.0
dependency_fanout = 0.3

[advanced]
parallel_analysis = true
max_parallel_processes = 4
cache_results = false
cache_dir = ".diff-sense"
"""


_TYPE_NOUNS: dict[type, str] = {
    bool: "a boolean",
    int: "an integer",
    float: "a number",
    str: "a string",
}


@dataclass(slots=True)
class AnalysisConfig:
    """Per-run analysis limits."""

    max_files_to_analyze: int = 500
    file_analysis_timeout: int = 5000
    context_depth: int = 2

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_files_to_analyze": self.max_files_to_analyze,
            "file_analysis_timeout": self.file_analysis_timeout,
            "context_depth": self.context_depth,
        }


@dataclass(slots=True)
class RulesConfig:
    """Rule sources and classification overrides."""

    custom_rules: list[dict[str, Any]] = field(default_factory=list)
    custom_rules_path: str | None = None
    replace_defaults: bool = False
    breaking_change_patterns: list[str] = field(
        default_factory=lambda: list(DEFAULT_BREAKING_CHANGE_PATTERNS)
    )
    non_versioning_patterns: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "custom_rules": [dict(item) for item in self.custom_rules],
            "custom_rules_path": self.custom_rules_path,
            "replace_defaults": self.replace_defaults,
            "breaking_change_patterns": list(self.breaking_change_patterns),
            "non_versioning_patterns": list(self.non_versioning_patterns),
        }


@dataclass(slots=True)
class ScoringConfig:
    """Factor weights for the scoring system."""

    lines_of_code: float = 0.5
    semantic_importance: float = 0.8
    breaking_penalty_bonus: float = 1.0
    dependency_fanout: float = 0.3

    def to_dict(self) -> dict[str, Any]:
        return {
            "lines_of_code": self.lines_of_code,
            "semantic_importance": self.semantic_importance,
            "breaking_penalty_bonus": self.breaking_penalty_bonus,
            "dependency_fanout": self.dependency_fanout,
        }


@dataclass(slots=True)
class AdvancedConfig:
    """Parallelism and caching controls."""

    parallel_analysis: bool = True
    max_parallel_processes: int = 4
    cache_results: bool = False
    cache_dir: str = ".diff-sense"

    def to_dict(self) -> dict[str, Any]:
        return {
            "parallel_analysis": self.parallel_analysis,
            "max_parallel_processes": self.max_parallel_processes,
            "cache_results": self.cache_results,
            "cache_dir": self.cache_dir,
        }


@dataclass(slots=True)
class AppConfig:
    """Resolved configuration for one analysis run."""

    format: str = "human"
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    rules: RulesConfig = field(default_factory=RulesConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    advanced: AdvancedConfig = field(default_factory=AdvancedConfig)
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "format": self.format,
            "analysis": self.analysis.to_dict(),
            "rules": self.rules.to_dict(),
            "scoring": {"weights": self.scoring.to_dict()},
            "advanced": self.advanced.to_dict(),
            "source": self.source,
        }


def load_app_config(repo: Path, config_path: Path | None = None) -> AppConfig:
    """Resolve configuration for ``repo``.

    An explicit ``config_path`` must exist. Otherwise the first of
    ``.diff-sense.toml``, ``diff-sense.toml`` and a ``[tool.diff_sense]`` table
    in ``pyproject.toml`` wins, and with none of them present the defaults apply.
    """
    root = repo.resolve()
    if config_path is not None:
        path = config_path if config_path.is_absolute() else root / config_path
        if not path.exists():
            raise ValueError(f"Config file does not exist: {path}")
        return _config_from_file(path)

    for path in (root / name for name in CONFIG_FILENAMES):
        if path.exists():
            return _config_from_file(path)

    pyproject = root / PYPROJECT_FILENAME
    if pyproject.exists():
        table = _tool_table(_read_toml(pyproject))
        if table:
            return _from_mapping(table, source=str(pyproject))
    return AppConfig()


def default_config_template() -> str:
    """Return a starter config file."""
    return _TEMPLATE


def _config_from_file(path: Path) -> AppConfig:
    document = _read_toml(path)
    table = _tool_table(document)
    if path.name == PYPROJECT_FILENAME:
        document = table or {}
    elif table is not None:
        document = table
    return _from_mapping(document, source=str(path))


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in {path}: {exc}") from exc


def _tool_table(document: dict[str, Any]) -> dict[str, Any] | None:
    tool = document.get("tool")
    if isinstance(tool, dict):
        for key in PYPROJECT_TOOL_KEYS:
            if isinstance(tool.get(key), dict):
                return tool[key]
    return None


def _from_mapping(mapping: dict[str, Any], *, source: str) -> AppConfig:
    output_format = str(mapping.get("format", "human")).lower()
    if output_format not in OUTPUT_FORMATS:
        raise ValueError(f"format must be one of: {', '.join(sorted(OUTPUT_FORMATS))}")
    scoring = _table(mapping.get("scoring"), "scoring")
    return AppConfig(
        format=output_format,
        analysis=_parse_analysis(_table(mapping.get("analysis"), "analysis")),
        rules=_parse_rules(_table(mapping.get("rules"), "rules")),
        scoring=_parse_weights(_table(scoring.get("weights"), "scoring.weights")),
        advanced=_parse_advanced(_table(mapping.get("advanced"), "advanced")),
        source=source,
    )


def _parse_analysis(table: dict[str, Any]) -> AnalysisConfig:
    defaults = AnalysisConfig()
    return AnalysisConfig(
        max_files_to_analyze=_bounded(
            table.get("max_files_to_analyze", defaults.max_files_to_analyze),
            "analysis.max_files_to_analyze",
            minimum=1,
        ),
        file_analysis_timeout=_bounded(
            table.get("file_analysis_timeout", defaults.file_analysis_timeout),
            "analysis.file_analysis_timeout",
            minimum=1,
        ),
        context_depth=_bounded(
            table.get("context_depth", defaults.context_depth),
            "analysis.context_depth",
            minimum=0,
        ),
    )


def _parse_rules(table: dict[str, Any]) -> RulesConfig:
    custom = table.get("custom_rules")
    raw_patterns = table.get("breaking_change_patterns")
    if raw_patterns is None:
        patterns = list(DEFAULT_BREAKING_CHANGE_PATTERNS)
    else:
        patterns = _strings(raw_patterns, "rules.breaking_change_patterns")
    for pattern in patterns:
        try:
            re.compile(pattern)
        except re.error as exc:
            raise ValueError(
                f"rules.breaking_change_patterns has invalid regex {pattern!r}: {exc}"
            ) from exc

    return RulesConfig(
        custom_rules=[] if isinstance(custom, str) else _tables(custom, "rules.custom_rules"),
        custom_rules_path=custom if isinstance(custom, str) else None,
        replace_defaults=_expect(
            table.get("replace_defaults", False), bool, "rules.replace_defaults"
        ),
        breaking_change_patterns=patterns,
        non_versioning_patterns=_strings(
            table.get("non_versioning_patterns"), "rules.non_versioning_patterns"
        ),
    )


def _parse_weights(table: dict[str, Any]) -> ScoringConfig:
    weights = ScoringConfig().to_dict()
    unknown = sorted(set(table) - set(weights))
    if unknown:
        raise ValueError(f"Unknown scoring weights: {', '.join(unknown)}")
    for key, raw in table.items():
        weight = _expect(raw, float, f"scoring.weights.{key}")
        if weight < 0:
            raise ValueError(f"scoring.weights.{key} must be non-negative, got {weight}")
        weights[key] = weight
    return ScoringConfig(**weights)


def _parse_advanced(table: dict[str, Any]) -> AdvancedConfig:
    defaults = AdvancedConfig()
    return AdvancedConfig(
        parallel_analysis=_expect(
            table.get("parallel_analysis", defaults.parallel_analysis),
            bool,
            "advanced.parallel_analysis",
        ),
        max_parallel_processes=_bounded(
            table.get("max_parallel_processes", defaults.max_parallel_processes),
            "advanced.max_parallel_processes",
            minimum=1,
        ),
        cache_results=_expect(
            table.get("cache_results", defaults.cache_results), bool, "advanced.cache_results"
        ),
        cache_dir=_expect(table.get("cache_dir", defaults.cache_dir), str, "advanced.cache_dir"),
    )


def _table(value: Any, name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{name} must be a table/object")
    return value


def _tables(value: Any, name: str) -> list[dict[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
        raise ValueError(f"{name} must be a list of tables")
    return list(value)


def _strings(value: Any, name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"{name} must be a list of strings")
    return list(value)


def _expect(value: Any, kind: type, name: str) -> Any:
    """Type-check a scalar. Booleans never count as numbers."""
    accepted: tuple[type, ...] = (int, float) if kind is float else (kind,)
    if (isinstance(value, bool) and kind is not bool) or not isinstance(value, accepted):
        raise ValueError(f"{name} must be {_TYPE_NOUNS[kind]}")
    return float(value) if kind is float else value


def _bounded(value: Any, name: str, *, minimum: int) -> int:
    number = _expect(value, int, name)
    if number < minimum:
        bound = "> 0" if minimum == 1 else f">= {minimum}"
        raise ValueError(f"{name} must be {bound}")
    return number

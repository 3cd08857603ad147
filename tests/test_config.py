from __future__ import annotations

from pathlib import Path

import pytest

from diff_sense.config import AppConfig, default_config_template, load_app_config


def test_defaults_when_no_config(tmp_path: Path) -> None:
    config = load_app_config(tmp_path)
    assert config == AppConfig()
    assert config.source is None
    assert config.analysis.file_analysis_timeout == 5000
    assert config.rules.breaking_change_patterns == ["BREAKING[ -]CHANGE:"]


def test_dotfile_takes_precedence_over_pyproject(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        '[tool.diff_sense]\nformat = "markdown"\n', encoding="utf-8"
    )
    assert load_app_config(tmp_path).format == "markdown"

    (tmp_path / ".diff-sense.toml").write_text('format = "json"\n', encoding="utf-8")
    config = load_app_config(tmp_path)
    assert config.format == "json"
    assert config.source == str((tmp_path / ".diff-sense.toml").resolve())


def test_explicit_path_and_custom_rules(tmp_path: Path) -> None:
    path = tmp_path / "custom.toml"
    path.write_text(
        "\n".join(
            [
                "[analysis]",
                "context_depth = 0",
                "[rules]",
                'custom_rules = "rules.yaml"',
                'non_versioning_patterns = ["vendor/**"]',
                "[scoring.weights]",
                "lines_of_code = 1.5",
                "[advanced]",
                "parallel_analysis = false",
            ]
        ),
        encoding="utf-8",
    )
    config = load_app_config(tmp_path, config_path=Path("custom.toml"))

    assert config.analysis.context_depth == 0
    assert config.rules.custom_rules_path == "rules.yaml"
    assert config.rules.custom_rules == []
    assert config.rules.non_versioning_patterns == ["vendor/**"]
    assert config.scoring.lines_of_code == 1.5
    assert config.scoring.dependency_fanout == 0.3
    assert config.advanced.parallel_analysis is False


def test_inline_custom_rules(tmp_path: Path) -> None:
    (tmp_path / ".diff-sense.toml").write_text(
        '[[rules.custom_rules]]\nid = "api"\nmatchPath = "src/api"\ntype = "feat"\n',
        encoding="utf-8",
    )
    config = load_app_config(tmp_path)
    assert config.rules.custom_rules == [{"id": "api", "matchPath": "src/api", "type": "feat"}]


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ('format = "xml"', "format must be one of"),
        ("[analysis]\nmax_files_to_analyze = 0", "max_files_to_analyze must be > 0"),
        ("[analysis]\nfile_analysis_timeout = true", "must be an integer"),
        ("[scoring.weights]\nvelocity = 1.0", "Unknown scoring weights: velocity"),
        ("[scoring.weights]\nlines_of_code = -1", "must be non-negative"),
        ('[rules]\nbreaking_change_patterns = ["("]', "invalid regex"),
        ("[advanced]\nmax_parallel_processes = 0", "max_parallel_processes must be > 0"),
        ("format = [", "Invalid TOML"),
    ],
)
def test_invalid_values_raise(tmp_path: Path, content: str, message: str) -> None:
    (tmp_path / ".diff-sense.toml").write_text(content + "\n", encoding="utf-8")
    with pytest.raises(ValueError, match=message):
        load_app_config(tmp_path)


def test_missing_explicit_config(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="does not exist"):
        load_app_config(tmp_path, config_path=Path("missing.toml"))


def test_template_round_trips(tmp_path: Path) -> None:
    (tmp_path / ".diff-sense.toml").write_text(default_config_template(), encoding="utf-8")
    config = load_app_config(tmp_path)
    assert config.rules.custom_rules[0]["id"] == "payments-api"
    assert config.rules.non_versioning_patterns == ["vendor/**"]

"""CLI entrypoint for diff-sense."""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path
from typing import Annotated, Any

import typer

from diff_sense import __version__
from diff_sense.config import AppConfig, default_config_template, load_app_config
from diff_sense.errors import RuleConfigError
from diff_sense.logging import configure_logging
from diff_sense.models import Report
from diff_sense.output import OUTPUT_FORMATS, render
from diff_sense.pipeline import AnalysisFailure, run_pipeline
from diff_sense.rules import load_rule_set
from diff_sense.rules.schema import RuleSet

EXIT_BREAKING = 1
EXIT_REVISION = 2
EXIT_RULE_CONFIG = 3

INFO_FORMATS = ("human", "json")

RepoOption = Annotated[Path, typer.Option(help="Repository to analyze.")]
BaseOption = Annotated[str, typer.Option(help="Base revision (commit, branch or tag).")]
HeadOption = Annotated[str, typer.Option(help="Head revision; empty compares the working tree.")]
ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help="Config TOML file; defaults to repository lookup."),
]
InfoFormatOption = Annotated[str, typer.Option(help="Output format: human|json.")]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")]

app = typer.Typer(
    name="diff-sense",
    no_args_is_help=True,
    help="Classify changes between two git revisions into conventional-commit types.",
)


def version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option("--version", help="Print the version and exit.", callback=version_callback),
    ] = False,
) -> None:
    """diff-sense: conventional-commit classification for git changes."""
    _ = version


@app.command("analyze")
def analyze_command(
    repo: RepoOption = Path("."),
    base: BaseOption = "HEAD",
    head: HeadOption = "",
    format: Annotated[
        str | None,
        typer.Option(help="Output format: human|json|markdown.", show_default="human"),
    ] = None,
    fail_on_breaking: Annotated[
        bool,
        typer.Option("--fail-on-breaking", help="Exit 1 when a breaking change is detected."),
    ] = False,
    verbose: VerboseOption = False,
    log_file: Annotated[Path | None, typer.Option(help="Also write logs to this file.")] = None,
    config_file: ConfigOption = None,
) -> None:
    """Analyze the changes between two revisions and print a report."""
    configure_logging(verbose=verbose, log_file=log_file)
    app_config = _load_config_or_raise(repo, config_file)
    output_format = _format_or_raise(format or app_config.format, OUTPUT_FORMATS)

    report = _run_or_exit(repo, base, head, app_config)
    typer.echo(render(report, output_format))

    if fail_on_breaking and report.has_breaking_changes:
        raise typer.Exit(code=EXIT_BREAKING)


@app.command("message")
def message_command(
    repo: RepoOption = Path("."),
    base: BaseOption = "HEAD",
    head: HeadOption = "",
    verbose: VerboseOption = False,
    config_file: ConfigOption = None,
) -> None:
    """Print only the suggested conventional-commit message."""
    configure_logging(verbose=verbose)
    report = _run_or_exit(repo, base, head, _load_config_or_raise(repo, config_file))
    typer.echo(report.suggested_commit.message)


@app.command("rules")
def rules_command(
    repo: RepoOption = Path("."),
    format: InfoFormatOption = "human",
    config_file: ConfigOption = None,
) -> None:
    """List the effective rules in evaluation order."""
    output_format = _format_or_raise(format, INFO_FORMATS)
    app_config = _load_config_or_raise(repo, config_file)
    rule_set = _load_rules_or_exit(app_config, repo)

    payload = {
        "rules": [rule.to_dict() for rule in rule_set],
        "non_versioning_patterns": list(rule_set.non_versioning_patterns),
        "meta": {"config_source": app_config.source},
    }
    lines = ["Rules (first match wins):"]
    for index, rule in enumerate(rule_set, start=1):
        flag = " [ambiguous]" if rule.ambiguous else ""
        lines.append(f"{index}. {rule.id} -> {rule.type}{flag} ({rule.source}) {rule.reason}")
    lines.append(f"Non-versioning patterns: {len(rule_set.non_versioning_patterns)}")
    _emit(payload, lines, output_format)


@app.command("config")
def config_command(
    repo: RepoOption = Path("."),
    format: InfoFormatOption = "human",
    config_file: ConfigOption = None,
) -> None:
    """Show the resolved configuration and the active rule ids."""
    output_format = _format_or_raise(format, INFO_FORMATS)
    app_config = _load_config_or_raise(repo, config_file)
    rule_set = _load_rules_or_exit(app_config, repo)

    payload = app_config.to_dict()
    payload["active_rule_ids"] = [rule.id for rule in rule_set]
    lines = [f"Configuration ({app_config.source or 'defaults'}):"]
    for section in ("analysis", "rules", "advanced"):
        for key, value in payload[section].items():
            lines.append(f"  {section}.{key} = {value!r}")
    for key, value in payload["scoring"]["weights"].items():
        lines.append(f"  scoring.weights.{key} = {value!r}")
    lines.append(f"  format = {app_config.format!r}")
    lines.append(f"Active rules: {', '.join(payload['active_rule_ids'])}")
    _emit(payload, lines, output_format)


@app.command("config-init")
def config_init_command(
    out: Annotated[Path, typer.Option(help="Where to write the starter config.")] = Path(
        ".diff-sense.toml"
    ),
    force: Annotated[bool, typer.Option("--force", help="Replace an existing file.")] = False,
) -> None:
    """Write a starter .diff-sense.toml."""
    target = out.resolve()
    if target.exists() and not force:
        raise typer.BadParameter(
            f"Refusing to overwrite existing file: {target}. Pass --force to replace it.",
            param_hint="--out",
        )
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(default_config_template(), encoding="utf-8")
    typer.echo(f"Wrote starter config: {target}")


@app.command("config-validate")
def config_validate_command(
    repo: RepoOption = Path("."),
    config_file: Annotated[
        Path,
        typer.Option("--config", help="Config TOML file to validate."),
    ] = Path(".diff-sense.toml"),
    format: InfoFormatOption = "human",
) -> None:
    """Check that a config file and the rule set it produces are valid."""
    output_format = _format_or_raise(format, INFO_FORMATS)
    app_config = _load_config_or_raise(repo, config_file)
    rule_set = _load_rules_or_exit(app_config, repo)

    active = [rule.id for rule in rule_set]
    ambiguous = [rule.id for rule in rule_set.ambiguous_rules()]
    payload = {
        "ok": True,
        "source": app_config.source,
        "active_rule_ids": active,
        "ambiguous_rule_ids": ambiguous,
    }
    lines = [f"{app_config.source}: OK ({len(active)} rules)"]
    if ambiguous:
        lines.append(f"Ambiguous rules (declaration order decides): {', '.join(ambiguous)}")
    _emit(payload, lines, output_format)


def main() -> None:
    """Console script entrypoint."""
    app()


def _run_or_exit(repo: Path, base: str, head: str, app_config: AppConfig) -> Report:
    result = run_pipeline(repo.resolve(), base, head, config=app_config)
    if isinstance(result, AnalysisFailure):
        typer.echo(f"Error: {result.message}", err=True)
        raise typer.Exit(code=EXIT_REVISION if result.kind == "revision" else EXIT_RULE_CONFIG)
    return result.report


def _load_config_or_raise(repo: Path, config_file: Path | None = None) -> AppConfig:
    try:
        return load_app_config(repo, config_path=config_file)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="config") from exc


def _load_rules_or_exit(app_config: AppConfig, repo: Path) -> RuleSet:
    try:
        return load_rule_set(app_config.rules, repo.resolve())
    except RuleConfigError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=EXIT_RULE_CONFIG) from exc


def _format_or_raise(raw: str, allowed: Sequence[str]) -> str:
    output_format = raw.lower()
    if output_format not in allowed:
        raise typer.BadParameter(
            f"format must be one of: {', '.join(allowed)}", param_hint="--format"
        )
    return output_format


def _emit(payload: dict[str, Any], lines: list[str], output_format: str) -> None:
    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
    else:
        typer.echo("\n".join(lines))

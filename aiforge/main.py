"""
ai-forge — CLI entrypoint.

Usage:
    ai-forge --help
    ai-forge install
    NONINTERACTIVE=1 INSTALL_SELECTION=all ai-forge install
    ai-forge components
    ai-forge config
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from aiforge import __version__
from aiforge.core.observability.logging_config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="ai-forge")
@click.option("--verbose", "-v", is_flag=True, help="Timestamped log lines with module context.")
@click.option("--quiet", "-q", is_flag=True, help="Only show warnings and errors.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to config.yml (default: $AIFORGE_CONFIG or ~/.config/ai-forge/config.yml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """ai-forge — bootstrap an Ubuntu 24.04 developer workstation."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path).expanduser() if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "WARNING"
    else:
        level = os.environ.get("AIFORGE_LOG_LEVEL", "INFO")

    setup_logging(
        level=level,
        log_file=os.environ.get("AIFORGE_LOG_FILE"),
        log_file_level=os.environ.get("AIFORGE_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
        verbose=verbose,
    )


# ── Helpers ─────────────────────────────────────────────────────


def _load_file_values(config_path: Path | None) -> dict[str, str]:
    """Read the config file for display/prompt defaults; exit 1 if broken."""
    from aiforge.core.config.loader import default_config_path, load_config_file
    from aiforge.core.errors import ConfigError

    try:
        return load_config_file(config_path or default_config_path())
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)


def _print_defaults(values: dict[str, str]) -> None:
    click.secho("\nUbuntu Dev Bootstrap (Ubuntu 24.04 LTS)", fg="cyan", bold=True)
    click.echo("\nDefaults (override via env, config file or prompt):")
    for name, value in values.items():
        click.echo(f"  {name:<18} {value or '(empty)'}")
    click.echo("\nCore packages:")
    click.echo("  - Installed automatically before optional components.\n")


def _prompt_settings(values: dict[str, str]) -> dict[str, str]:
    """Ask for every configuration value, pre-filled with the resolved one."""
    from aiforge.core.config.defaults import CONFIG_VALUES

    answers: dict[str, str] = {}
    for cv in CONFIG_VALUES:
        current = values.get(cv.name, cv.default)
        answer = click.prompt(
            cv.prompt,
            default=current or ("none" if cv.allow_empty else ""),
            show_default=True,
        ).strip()
        if cv.allow_empty and answer.lower() == "none":
            answers[cv.name] = ""
            continue
        answers[cv.name] = answer or current
    return answers


def _ask_menu(menu: str) -> str:
    click.echo(menu)
    return click.prompt("Selection", default="", show_default=False)


_STATUS_STYLE = {
    "succeeded": ("✅", "green"),
    "skipped": ("⊘ ", "white"),
    "failed-best-effort": ("⚠️ ", "yellow"),
    "failed-fatal": ("❌", "red"),
}


# ── Commands ────────────────────────────────────────────────────


@cli.command()
@click.option("--non-interactive", is_flag=True, help="Never prompt (same as NONINTERACTIVE=1).")
@click.option("--select", "selection", default=None,
              help="Components to install: numbers/keys, comma-separated, or 'all'.")
@click.option("--dry-run", is_flag=True, help="Log mutating commands instead of running them.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(
    ctx: click.Context,
    non_interactive: bool,
    selection: str | None,
    dry_run: bool,
    as_json: bool,
) -> None:
    """Install the core packages and the selected components."""
    from aiforge.adapters import CommandRunner
    from aiforge.core.config.defaults import SELECTION_ENV_VAR, is_noninteractive, load_settings
    from aiforge.core.use_cases.install import run_install

    config_path = ctx.obj.get("config_path")
    interactive = not (non_interactive or as_json or is_noninteractive())
    raw_selection = selection if selection is not None else os.environ.get(SELECTION_ENV_VAR)

    answers: dict[str, str] | None = None
    if not as_json:
        file_values = _load_file_values(config_path)
        values = load_settings(file_values=file_values).to_dict()
        _print_defaults(values)
        if interactive:
            answers = _prompt_settings(values)

    result = run_install(
        CommandRunner(dry_run=dry_run),
        raw_selection=raw_selection,
        interactive=interactive,
        ask=_ask_menu if interactive else None,
        answers=answers,
        config_path=config_path,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)
        return

    if result.report is not None:
        click.secho("\n📋 Summary", fg="cyan", bold=True)
        for outcome in result.report.outcomes:
            icon, color = _STATUS_STYLE[outcome.status]
            click.secho(f"   {icon} {outcome.component:<9} ", fg=color, nl=False)
            click.echo(outcome.message)
            for warning in outcome.warnings:
                click.secho(f"        ⚠️  {warning}", fg="yellow")
        for token in result.report.unknown:
            click.secho(f"   ⚠️  Unknown selection ignored: {token}", fg="yellow")

    if not result.ok:
        click.echo()
        click.secho(f"❌ {result.error}", fg="red", bold=True)
        if result.step:
            click.echo(f"   Failed step: {result.step}")
        click.echo("   Re-running is safe: completed steps are skipped.")
        _print_failures(result.failures)
        sys.exit(1)

    click.echo()
    click.secho("✅ Complete.", fg="green", bold=True)
    _print_failures(result.failures)

    if not ctx.obj.get("quiet"):
        home = Path.home()
        click.echo()
        click.secho("Notes:", fg="yellow")
        click.echo("  - If your login shell was changed to zsh: it applies next login.")
        click.echo("  - Managed env files:")
        click.echo(f"    - {home / '.config' / 'ai-forge' / 'env.sh'} (bash/sh)")
        click.echo(f"    - {home / '.config' / 'ai-forge' / 'env.zsh'} (zsh)")
        if dry_run:
            click.echo("  - Dry run: no changes were made.")
    click.echo()


def _print_failures(failures: list[str]) -> None:
    if not failures:
        return
    click.echo()
    click.secho(f"⚠️  {len(failures)} best-effort failure(s):", fg="yellow", bold=True)
    for message in failures:
        click.echo(f"   • {message}")


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def components(as_json: bool) -> None:
    """List installable components."""
    from aiforge.core.components import default_registry

    registry = default_registry()

    if as_json:
        click.echo(json.dumps([
            {
                "number": c.number,
                "key": c.key,
                "label": c.label,
                "settings": list(c.settings),
                "requires": list(c.requires),
                "best_effort": c.best_effort,
            }
            for c in registry
        ], indent=2))
        return

    click.secho(f"\n🧩 Components ({len(registry)})", fg="cyan", bold=True)
    for c in registry:
        extras = []
        if c.requires:
            extras.append(f"requires {', '.join(c.requires)}")
        if c.best_effort:
            extras.append("best effort")
        suffix = f"  ({'; '.join(extras)})" if extras else ""
        click.echo(f"   {c.number:>2}) {c.key:<9} {c.label}{suffix}")
    click.echo()


@cli.command("config")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_show(ctx: click.Context, as_json: bool) -> None:
    """Show resolved configuration values and where each comes from."""
    from aiforge.core.config.defaults import CONFIG_VALUES, load_settings, value_source
    from aiforge.core.config.loader import default_config_path

    config_path = ctx.obj.get("config_path") or default_config_path()
    file_values = _load_file_values(config_path)
    settings = load_settings(file_values=file_values)

    rows = [
        {
            "name": cv.name,
            "value": settings[cv.name],
            "source": value_source(cv.name, file_values=file_values),
        }
        for cv in CONFIG_VALUES
    ]
    unknown = sorted(set(file_values) - {cv.name for cv in CONFIG_VALUES})

    if as_json:
        click.echo(json.dumps({
            "config_file": str(config_path),
            "values": rows,
            "unknown_keys": unknown,
        }, indent=2))
        return

    click.secho(f"\n⚙️  Configuration ({config_path})", fg="cyan", bold=True)
    for row in rows:
        click.echo(f"   {row['name']:<18} {row['value'] or '(empty)':<20} ", nl=False)
        click.secho(f"[{row['source']}]", fg="bright_black")
    if unknown:
        click.echo()
        click.secho("⚠️  Unknown keys in config file (ignored):", fg="yellow")
        for key in unknown:
            click.echo(f"   • {key}")
    click.echo()


def main() -> None:
    """Entry point for ``python -m aiforge.main``."""
    cli()


if __name__ == "__main__":
    main()

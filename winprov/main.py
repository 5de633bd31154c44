"""
winprov — CLI entrypoint.

Usage:
    python -m winprov.main --help
    python -m winprov.main provision
    python -m winprov.main verify
    python -m winprov.main config check
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click
import yaml

from winprov import __version__
from winprov.core.models.receipt import Receipt
from winprov.core.observability.logging_config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="winprov")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to provision.yml (default: auto-detect, else built-in defaults).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """winprov — provision Windows Server roles (IIS, DNS, DHCP, RDS)."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("WINPROV_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("WINPROV_LOG_FILE"),
        log_file_level=os.environ.get("WINPROV_LOG_FILE_LEVEL"),
    )


def _echo_receipt(receipt: Receipt, verbose: bool = False) -> None:
    """Print one receipt as a status line."""
    timing = f" ({receipt.duration_ms}ms)" if receipt.duration_ms else ""
    if receipt.ok:
        click.secho(f"   ✓ {receipt.target}", fg="green", nl=False)
        click.echo(f" — {receipt.output}{timing}" if receipt.output else timing)
        if verbose:
            for effect in receipt.metadata.get("effects", []):
                click.echo(f"     │ {effect}")
    elif receipt.failed:
        click.secho(f"   ✗ {receipt.target}", fg="red", nl=False)
        click.echo(timing)
        if receipt.error:
            for line in receipt.error.split("\n")[:5]:
                click.echo(f"     │ {line}")
    else:
        click.secho(f"   ⊘ {receipt.target} ", fg="yellow", nl=False)
        click.echo(f"({receipt.output})")


def _echo_verification(lines: list, quiet: bool = False) -> None:
    from winprov.core.services.verify import render_report

    for text in render_report(lines):
        if text.startswith("  ✓"):
            click.secho(f" {text}", fg="green")
        elif text.startswith("  ✗"):
            click.secho(f" {text}", fg="red")
        elif text.startswith("  [ ]") and quiet:
            continue
        else:
            click.echo(f" {text}")


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--mock", is_flag=True, help="Rehearse against an in-memory host.")
@click.option("--skip-network", is_flag=True, help="Leave the network address unchanged.")
@click.pass_context
def provision(ctx: click.Context, as_json: bool, mock: bool, skip_network: bool) -> None:
    """Configure a static address, install and configure all roles, verify.

    Examples:

        winprov provision

        winprov --verbose provision --skip-network

        winprov provision --mock
    """
    from winprov.core.use_cases.provision import provision as run_provision

    result = run_provision(
        config_path=ctx.obj.get("config_path"),
        mock_mode=mock,
        skip_network=skip_network,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if not result.ok:
            sys.exit(1)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    report = result.report
    assert report is not None
    verbose = ctx.obj.get("verbose", False)
    quiet = ctx.obj.get("quiet", False)

    mode_label = "[mock] " if mock else ""
    click.secho(f"\n⚡ {mode_label}Provisioning", fg="cyan", bold=True)

    click.secho("\n   Network:", fg="white", bold=True)
    if report.network:
        _echo_receipt(report.network, verbose)

    click.secho("\n   Install:", fg="white", bold=True)
    for receipt in report.installs:
        _echo_receipt(receipt, verbose)

    click.secho("\n   Configure:", fg="white", bold=True)
    for receipt in report.configurations:
        _echo_receipt(receipt, verbose)

    click.echo()
    _echo_verification(report.verification, quiet=quiet)

    if report.restart_needed:
        click.echo()
        click.secho("   ⚠️  A restart is required to finish installing roles.", fg="yellow")

    click.echo()
    status_color = {"ok": "green", "partial": "yellow", "failed": "red"}.get(
        report.status, "white"
    )
    click.secho(
        f"   Result: {report.status} — {report.succeeded}/{len(report.receipts)} steps ok",
        fg=status_color,
        bold=True,
    )
    click.echo()

    if report.failed > 0:
        sys.exit(1)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--mock", is_flag=True, help="Rehearse against an in-memory host.")
@click.pass_context
def network(ctx: click.Context, as_json: bool, mock: bool) -> None:
    """Convert the active adapter's address to a static assignment."""
    from winprov.core.use_cases.provision import configure_network

    result = configure_network(mock_mode=mock)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if result.error or (result.receipt and result.receipt.failed):
            sys.exit(1)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    assert result.receipt is not None
    click.secho("\n🌐 Network", fg="cyan", bold=True)
    _echo_receipt(result.receipt, ctx.obj.get("verbose", False))
    click.echo()

    if result.receipt.failed:
        sys.exit(1)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--mock", is_flag=True, help="Rehearse against an in-memory host.")
@click.pass_context
def verify(ctx: click.Context, as_json: bool, mock: bool) -> None:
    """Check that every configured role is installed."""
    from winprov.core.use_cases.provision import verify as run_verify

    result = run_verify(config_path=ctx.obj.get("config_path"), mock_mode=mock)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.all_ok else 1)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    click.echo()
    _echo_verification(result.lines, quiet=ctx.obj.get("quiet", False))
    click.echo()

    if not result.all_ok:
        sys.exit(1)


@cli.group()
def config() -> None:
    """Provisioning configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate provision.yml configuration."""
    from winprov.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)
        return

    if result.valid:
        assert result.config is not None  # guaranteed when valid
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   Domain: {result.config.domain_name}")
        click.echo(f"   Roles:  {len(result.config.roles)}")
        click.echo(f"   Scope:  {result.config.scope_start} - {result.config.scope_end}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(1)

    click.echo()


@config.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Print the effective configuration as YAML."""
    from winprov.core.config.loader import ConfigError, load_config

    try:
        cfg = load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    click.echo(yaml.safe_dump(cfg.model_dump(mode="json"), sort_keys=False), nl=False)


if __name__ == "__main__":
    cli()

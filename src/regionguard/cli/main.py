"""CLI entry point for regionguard.

Invoked as::

    regionguard [OPTIONS] COMMAND [ARGS]...

or during development::

    python -m regionguard.cli.main

Commands
--------
- version           Show version information
- locate            Resolve a coordinate to a region
- check-region      Authorize a subject at a coordinate
- check-permission  Authorize a subject for a permission id
- audit show        Display recent audit events
- audit export      Export audit events to CSV or JSON
- grants list       List stored grants
- grants sweep      Remove expired temporary grants

``check-region`` and ``check-permission`` exit with status 0 when the
request is allowed and 1 when it is denied.
"""
from __future__ import annotations

import json
import sys
from pathlib import Path

import click
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from regionguard.audit.events import AuditEvent, AuditEventType, AuditFilter
from regionguard.audit.exporter import events_to_csv, events_to_json
from regionguard.audit.sink import JsonlAuditSink
from regionguard.config import ConfigLoader, RegionGuardConfig, configure_logging
from regionguard.engine.decision import Decision
from regionguard.errors import RegionGuardError
from regionguard.grants.models import time_remaining
from regionguard.identity import Subject
from regionguard.regions.index import Located
from regionguard.service import AccessControlService

console = Console()
err_console = Console(stderr=True)

_DEFAULT_CONFIG = Path("regionguard.yaml")


def _config_option(func):  # type: ignore[no-untyped-def]
    return click.option(
        "--config",
        "-c",
        "config_path",
        default=str(_DEFAULT_CONFIG),
        show_default=True,
        type=click.Path(),
        help="Path to regionguard.yaml.",
    )(func)


def _load_config(config_path: str) -> RegionGuardConfig:
    loader = ConfigLoader()
    cfg_path = Path(config_path)
    try:
        return loader.load(cfg_path) if cfg_path.exists() else loader.defaults()
    except RegionGuardError as exc:
        err_console.print(f"[red]Configuration error:[/red] {escape(str(exc))}")
        sys.exit(2)


def _load_service(config_path: str) -> AccessControlService:
    config = _load_config(config_path)
    configure_logging(config.log_level)
    service = AccessControlService()
    try:
        service.configure(config)
    except (RegionGuardError, FileNotFoundError) as exc:
        err_console.print(f"[red]Startup error:[/red] {escape(str(exc))}")
        sys.exit(2)
    return service


def _build_subject(subject_id: str, admin: bool, role: str | None, groups: tuple[str, ...]) -> Subject:
    return Subject(subject_id=subject_id, is_admin=admin, role=role, groups=groups)


def _print_decision(title: str, decision: Decision) -> None:
    status_str = "[green]ALLOWED[/green]" if decision.allowed else "[red]DENIED[/red]"
    console.print(Panel(status_str, title=title, border_style="blue"))
    console.print(f"  Reason: {escape(decision.reason)}")
    if decision.region:
        console.print(f"  Region: [cyan]{decision.region}[/cyan]")
    if decision.allowed:
        console.print(f"  Access: [cyan]{decision.access_kind.value}[/cyan]")
    if decision.denial is not None:
        console.print(f"  Denial: [bold red]{decision.denial.value}[/bold red]")
    if decision.matched_rule:
        console.print(f"  Rule:   [magenta]{decision.matched_rule}[/magenta]")


def _read_audit_events(config: RegionGuardConfig) -> list[AuditEvent]:
    if config.audit.log_path is None:
        return []
    return JsonlAuditSink(config.audit.log_path).read_all()


# ---------------------------------------------------------------------------
# Root command group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="regionguard")
def cli() -> None:
    """regionguard CLI: region access checks, permissions, audit and grants."""


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from regionguard import __version__

    console.print(
        Panel(
            f"[bold]regionguard[/bold]  v[cyan]{__version__}[/cyan]\n"
            "Region and permission access control engine.",
            title="Version",
            border_style="blue",
        )
    )


# ---------------------------------------------------------------------------
# locate
# ---------------------------------------------------------------------------


@cli.command(name="locate")
@click.option("--lat", required=True, type=float, help="Latitude in decimal degrees.")
@click.option("--lng", required=True, type=float, help="Longitude in decimal degrees.")
@_config_option
def locate_command(lat: float, lng: float, config_path: str) -> None:
    """Resolve a coordinate to a region of the configured boundary dataset."""
    service = _load_service(config_path)
    try:
        result = service.locate((lat, lng))
    except ValueError as exc:
        err_console.print(f"[red]Invalid coordinate:[/red] {escape(str(exc))}")
        sys.exit(2)

    if isinstance(result, Located):
        match_kind = "exact" if result.exact else f"nearest ({result.distance_km:.1f} km)"
        console.print(f"[green]{result.name}[/green]  ({match_kind})")
        sys.exit(0)
    console.print("[yellow]UNDETERMINED[/yellow]  no region contains or is near this point")
    sys.exit(1)


# ---------------------------------------------------------------------------
# check-region / check-permission
# ---------------------------------------------------------------------------


@cli.command(name="check-region")
@click.option("--subject", "-s", "subject_id", required=True, help="Subject identifier.")
@click.option("--lat", required=True, type=float, help="Latitude in decimal degrees.")
@click.option("--lng", required=True, type=float, help="Longitude in decimal degrees.")
@click.option("--admin", is_flag=True, default=False, help="Treat the subject as an admin.")
@click.option("--role", default=None, help="Subject role.")
@click.option("--group", "groups", multiple=True, help="Group membership (repeatable).")
@_config_option
def check_region_command(
    subject_id: str,
    lat: float,
    lng: float,
    admin: bool,
    role: str | None,
    groups: tuple[str, ...],
    config_path: str,
) -> None:
    """Authorize SUBJECT to work at the given coordinate."""
    service = _load_service(config_path)
    try:
        decision = service.authorize_region_access(_build_subject(subject_id, admin, role, groups), (lat, lng))
    except ValueError as exc:
        err_console.print(f"[red]Invalid request:[/red] {escape(str(exc))}")
        sys.exit(2)
    finally:
        service.stop()

    _print_decision("Region Access", decision)
    sys.exit(0 if decision.allowed else 1)


@cli.command(name="check-permission")
@click.argument("permission_id")
@click.option("--subject", "-s", "subject_id", required=True, help="Subject identifier.")
@click.option("--context", "context_json", default=None, help="Request context as a JSON object.")
@click.option("--admin", is_flag=True, default=False, help="Treat the subject as an admin.")
@click.option("--role", default=None, help="Subject role.")
@click.option("--group", "groups", multiple=True, help="Group membership (repeatable).")
@_config_option
def check_permission_command(
    permission_id: str,
    subject_id: str,
    context_json: str | None,
    admin: bool,
    role: str | None,
    groups: tuple[str, ...],
    config_path: str,
) -> None:
    """Authorize SUBJECT for PERMISSION_ID (e.g. gis.distance.use)."""
    context: dict[str, object] = {}
    if context_json:
        try:
            context = json.loads(context_json)
        except json.JSONDecodeError as exc:
            err_console.print(f"[red]Invalid JSON:[/red] {escape(str(exc))}")
            sys.exit(2)
        if not isinstance(context, dict):
            err_console.print("[red]Invalid JSON:[/red] context must be an object")
            sys.exit(2)

    service = _load_service(config_path)
    try:
        decision = service.authorize_permission(
            _build_subject(subject_id, admin, role, groups), permission_id, context
        )
    finally:
        service.stop()

    _print_decision("Permission Check", decision)
    sys.exit(0 if decision.allowed else 1)


# ---------------------------------------------------------------------------
# audit group
# ---------------------------------------------------------------------------


@cli.group(name="audit")
def audit_group() -> None:
    """Audit trail commands."""


@audit_group.command(name="show")
@click.option("--last", "-n", default=20, show_default=True, type=int, help="Number of recent entries to show.")
@click.option("--subject", "-s", "subject_id", default=None, help="Only events about this subject.")
@click.option("--denied", is_flag=True, default=False, help="Only unsuccessful events.")
@_config_option
def audit_show_command(last: int, subject_id: str | None, denied: bool, config_path: str) -> None:
    """Show recent audit events from the durable audit log."""
    config = _load_config(config_path)
    audit_filter = AuditFilter(subject=subject_id, success=False if denied else None)
    events = [e for e in _read_audit_events(config) if audit_filter.matches(e)][-last:]

    if not events:
        console.print("[yellow]No audit entries found.[/yellow]")
        return

    table = Table(title=f"Last {last} Audit Events", box=box.SIMPLE)
    table.add_column("Timestamp", style="dim", no_wrap=True)
    table.add_column("Subject", style="cyan")
    table.add_column("Event", style="magenta")
    table.add_column("Region")
    table.add_column("Reason")

    for event in events:
        ts = event.timestamp.isoformat()[:19].replace("T", " ")
        colour = "green" if event.success else "red"
        table.add_row(
            ts,
            event.subject,
            f"[{colour}]{event.event_type.value}[/{colour}]",
            event.region or "",
            escape(event.reason),
        )

    console.print(table)
    denials = sum(1 for e in events if e.event_type == AuditEventType.REGION_ACCESS_DENIED)
    console.print(f"  Region denials shown: [red]{denials}[/red]")


@audit_group.command(name="export")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["csv", "json"]),
    default="csv",
    show_default=True,
    help="Export format.",
)
@click.option("--output", "-o", "output_file", required=True, type=click.Path(), help="Output file path.")
@click.option("--subject", "-s", "subject_id", default=None, help="Only events about this subject.")
@_config_option
def audit_export_command(output_format: str, output_file: str, subject_id: str | None, config_path: str) -> None:
    """Export audit events to CSV or JSON."""
    config = _load_config(config_path)
    audit_filter = AuditFilter(subject=subject_id)
    events = [e for e in _read_audit_events(config) if audit_filter.matches(e)]

    out_path = Path(output_file)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    if output_format == "csv":
        out_path.write_bytes(events_to_csv(events))
    else:
        out_path.write_text(events_to_json(events), encoding="utf-8")

    console.print(f"[green]Exported[/green] {len(events)} records to [bold]{out_path}[/bold] ({output_format.upper()}).")


# ---------------------------------------------------------------------------
# grants group
# ---------------------------------------------------------------------------


@cli.group(name="grants")
def grants_group() -> None:
    """Grant store commands."""


@grants_group.command(name="list")
@click.option("--subject", "-s", "subject_id", default=None, help="Only grants held by this subject.")
@_config_option
def grants_list_command(subject_id: str | None, config_path: str) -> None:
    """List stored grants."""
    store = _load_service(config_path).grants
    if store is None:
        err_console.print("[red]Grant store error:[/red] no grant store configured")
        sys.exit(2)
    try:
        grants = store.grants_for(subject_id) if subject_id else store.all_grants()
    except RegionGuardError as exc:
        err_console.print(f"[red]Grant store error:[/red] {escape(str(exc))}")
        sys.exit(2)

    if not grants:
        console.print("[yellow]No grants found.[/yellow]")
        return

    table = Table(title="Grants", box=box.SIMPLE)
    table.add_column("Subject", style="cyan")
    table.add_column("Region")
    table.add_column("Source", style="magenta")
    table.add_column("Remaining")
    table.add_column("Granted by", style="dim")

    for grant in sorted(grants, key=lambda g: (g.subject, g.region)):
        remaining = time_remaining(grant)
        table.add_row(
            grant.subject,
            grant.region,
            grant.source.value,
            remaining.display if remaining else "-",
            grant.granted_by,
        )
    console.print(table)


@grants_group.command(name="sweep")
@_config_option
def grants_sweep_command(config_path: str) -> None:
    """Remove expired temporary grants from the store."""
    sweeper = _load_service(config_path).sweeper
    if sweeper is None:
        err_console.print("[red]Grant store error:[/red] no expiry sweeper configured")
        sys.exit(2)
    removed = sweeper.run_once()
    console.print(f"[green]Swept[/green] {removed} expired grant(s).")


if __name__ == "__main__":
    cli()

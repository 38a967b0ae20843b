"""
Beacon CLI entry point.

Commands:
    beacon id        — Derive a notification identity
    beacon encode    — Build a payload string
    beacon decode    — Inspect a payload string
    beacon next      — Preview fire times for a schedule
    beacon schedule  — Schedule into the local tray
    beacon show      — Show now in the local tray
    beacon pending   — List what the local tray holds
    beacon cancel    — Cancel one notification
    beacon cancel-all
    beacon tap       — Route a payload as if it was tapped
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Iterator, Mapping, Optional
from contextlib import contextmanager

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from beacon.adapters.base import Navigator
from beacon.core.errors import BeaconError, DecodingError
from beacon.notifications.envelope import NotificationEnvelope
from beacon.scheduler.schedule import Daily, Once, ScheduleSpec, Weekly

app = typer.Typer(
    name="beacon",
    help="Beacon — notification envelopes, schedules and tap routing.",
    add_completion=False,
)

console = Console()


class ConsoleNavigator(Navigator):
    """Prints where a tap would take the user."""

    def navigate(self, route: str, arguments: Mapping[str, str]) -> None:
        args = ", ".join(f"{k}={v}" for k, v in arguments.items())
        console.print(f"[bold cyan]→ {route}[/bold cyan] [dim]{args}[/dim]")


# ━━━ Helpers ━━━


def _parse_clock(value: str) -> tuple[int, int]:
    try:
        hour, minute = value.split(":", 1)
        return int(hour), int(minute)
    except ValueError:
        raise typer.BadParameter(f"Expected HH:MM, got {value!r}")


def _parse_attrs(pairs: list[str] | None) -> dict[str, str]:
    attrs: dict[str, str] = {}
    for pair in pairs or []:
        if "=" not in pair:
            raise typer.BadParameter(f"Expected key=value, got {pair!r}")
        key, value = pair.split("=", 1)
        attrs[key] = value
    return attrs


def _parse_when(value: str | None) -> datetime:
    if not value:
        return datetime.now()
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"Expected an ISO-8601 time, got {value!r}")


def _reference_now(value: str | None, spec: ScheduleSpec) -> datetime:
    """--now, or the current time in the zone of a one-shot --at."""
    if not isinstance(spec, Once):
        return _parse_when(value)
    tz = spec.at.tzinfo
    now = _parse_when(value) if value else datetime.now(tz)
    if (now.tzinfo is None) != (tz is None):
        raise typer.BadParameter("--at and --now must both have a UTC offset or both have none")
    return now


def _build_spec(at: str | None, daily: str | None, weekday: int | None) -> ScheduleSpec:
    if at:
        return Once(_parse_when(at))
    if daily:
        hour, minute = _parse_clock(daily)
        if weekday is not None:
            return Weekly(weekday, hour, minute)
        return Daily(hour, minute)
    raise typer.BadParameter("Give --at for a one-shot or --daily HH:MM (with optional --weekday)")


def _fail(message: str) -> None:
    console.print(f"[red]{message}[/red]")
    raise typer.Exit(1)


@contextmanager
def _service(db: Path | None, verbose: bool = False) -> Iterator:
    """Service wired to the SQLite tray and console navigation, rehydrated."""
    from beacon.adapters.sqlite import SQLiteTrayAdapter
    from beacon.core.config import BeaconConfig
    from beacon.core.service import NotificationService
    from beacon.middleware.logging import EventJournal, setup_logging

    try:
        config = BeaconConfig.load()
    except BeaconError as e:
        _fail(e.message)

    setup_logging(config.logging, verbose=verbose)

    tray = SQLiteTrayAdapter(db_path=db or config.get_tray_path())
    tray.initialize()
    service = NotificationService(config=config, adapter=tray, navigator=ConsoleNavigator())
    if config.logging.log_events:
        service.use(EventJournal(config.get_log_dir()).middleware)
    service.rehydrate()
    try:
        yield service, tray
    finally:
        tray.close()


_db_option = typer.Option(None, "--db", help="Tray database (default from config)")


# ━━━ Commands ━━━


@app.command()
def version() -> None:
    """Show Beacon version."""
    from beacon import __version__

    console.print(f"Beacon v{__version__}")


@app.command()
def config() -> None:
    """Show the effective configuration."""
    from beacon.core.config import BeaconConfig

    try:
        cfg = BeaconConfig.load()
    except BeaconError as e:
        _fail(e.message)
    console.print(Panel("[bold]Beacon Configuration[/bold]", border_style="cyan"))
    console.print_json(cfg.model_dump_json())


@app.command("id")
def identity(
    entity_id: str = typer.Argument(..., help="Entity id, e.g. task_1"),
    purpose: str = typer.Argument("default", help="Purpose tag, e.g. before"),
) -> None:
    """Derive the identity for (entity, purpose)."""
    from beacon.notifications.identity import derive_id

    console.print(str(derive_id(entity_id, purpose)))


@app.command()
def encode(
    kind: str = typer.Option(..., "--kind", "-k", help="Envelope kind"),
    entity: Optional[str] = typer.Option(None, "--entity", "-e"),
    secondary: Optional[str] = typer.Option(None, "--secondary", "-s"),
    route: Optional[str] = typer.Option(None, "--route", "-r"),
    attr: Optional[list[str]] = typer.Option(None, "--attr", "-a", help="key=value"),
) -> None:
    """Print the payload string for an envelope."""
    from beacon.notifications.codec import encode as encode_envelope

    envelope = NotificationEnvelope(
        kind=kind,
        entity_id=entity,
        secondary_id=secondary,
        target_route=route,
        attributes=_parse_attrs(attr),
    )
    try:
        payload = encode_envelope(envelope)
    except BeaconError as e:
        _fail(e.message)
    # Plain print: the payload must stay copy-pasteable
    typer.echo(payload)


@app.command()
def decode(payload: str = typer.Argument(..., help="Payload string")) -> None:
    """Show the envelope inside a payload string."""
    from beacon.notifications.codec import decode as decode_envelope

    try:
        envelope = decode_envelope(payload)
    except DecodingError as e:
        _fail(f"Cannot decode: {e.message}")

    table = Table(show_header=False, box=None)
    table.add_row("kind", envelope.kind)
    table.add_row("entity", envelope.entity_id or "-")
    table.add_row("secondary", envelope.secondary_id or "-")
    table.add_row("route", envelope.target_route or "-")
    table.add_row("created", envelope.created_at.isoformat() if envelope.created_at else "-")
    for key, value in envelope.attributes.items():
        table.add_row(f"@{key}", value)
    console.print(table)


@app.command("next")
def next_times(
    at: Optional[str] = typer.Option(None, "--at", help="One-shot ISO time"),
    daily: Optional[str] = typer.Option(None, "--daily", help="HH:MM"),
    weekday: Optional[int] = typer.Option(None, "--weekday", help="1=Mon … 7=Sun"),
    now: Optional[str] = typer.Option(None, "--now", help="Reference time (ISO)"),
    count: int = typer.Option(3, "--count", "-n"),
) -> None:
    """Preview upcoming fire times."""
    from beacon.scheduler.calculator import upcoming

    try:
        spec = _build_spec(at, daily, weekday)
    except BeaconError as e:
        _fail(e.message)
    times = list(upcoming(spec, _reference_now(now, spec), count))
    if not times:
        _fail(f"{spec.description}: already in the past")
    console.print(f"[bold]{spec.description}[/bold]")
    for t in times:
        console.print(f"  {t.isoformat()}")


@app.command()
def schedule(
    entity_id: str = typer.Argument(...),
    purpose: str = typer.Argument("default"),
    kind: str = typer.Option(..., "--kind", "-k"),
    title: str = typer.Option("", "--title", "-t"),
    body: str = typer.Option("", "--body", "-b"),
    secondary: Optional[str] = typer.Option(None, "--secondary", "-s"),
    route: Optional[str] = typer.Option(None, "--route", "-r"),
    attr: Optional[list[str]] = typer.Option(None, "--attr", "-a", help="key=value"),
    at: Optional[str] = typer.Option(None, "--at", help="One-shot ISO time"),
    daily: Optional[str] = typer.Option(None, "--daily", help="HH:MM"),
    weekday: Optional[int] = typer.Option(None, "--weekday", help="1=Mon … 7=Sun"),
    now: Optional[str] = typer.Option(None, "--now", help="Reference time (ISO)"),
    db: Optional[Path] = _db_option,
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Schedule a notification in the local tray."""
    envelope = NotificationEnvelope(
        kind=kind,
        entity_id=entity_id,
        secondary_id=secondary,
        target_route=route,
        attributes=_parse_attrs(attr),
    )
    with _service(db, verbose) as (service, tray):
        try:
            spec = _build_spec(at, daily, weekday)
            identity = service.schedule(
                entity_id, purpose, envelope, spec,
                now=_reference_now(now, spec), title=title, body=body,
            )
        except BeaconError as e:
            _fail(e.message)
        entry = service.registry.get(entity_id, purpose)
        console.print(
            f"[green]Scheduled[/green] {entity_id}/{purpose} id={identity} "
            f"at {entry.fire_at.isoformat()} [dim]({spec.description})[/dim]"
        )


@app.command()
def show(
    entity_id: str = typer.Argument(...),
    purpose: str = typer.Argument("default"),
    kind: str = typer.Option(..., "--kind", "-k"),
    title: str = typer.Option("", "--title", "-t"),
    body: str = typer.Option("", "--body", "-b"),
    secondary: Optional[str] = typer.Option(None, "--secondary", "-s"),
    attr: Optional[list[str]] = typer.Option(None, "--attr", "-a", help="key=value"),
    db: Optional[Path] = _db_option,
) -> None:
    """Show a notification in the local tray now."""
    envelope = NotificationEnvelope(
        kind=kind,
        entity_id=entity_id,
        secondary_id=secondary,
        attributes=_parse_attrs(attr),
    )
    with _service(db) as (service, tray):
        try:
            identity = service.show(entity_id, purpose, envelope, title=title, body=body)
        except BeaconError as e:
            _fail(e.message)
        console.print(f"[green]Shown[/green] {entity_id}/{purpose} id={identity}")


@app.command()
def pending(db: Optional[Path] = _db_option) -> None:
    """List notifications held by the local tray."""
    with _service(db) as (service, tray):
        rows = tray.rows()
        if not rows:
            console.print("[dim]Tray is empty.[/dim]")
            raise typer.Exit(0)

        table = Table(title=f"Tray ({len(service.pending())} rehydrated)")
        table.add_column("id", justify="right", no_wrap=True)
        table.add_column("state", no_wrap=True)
        table.add_column("fires at", no_wrap=True)
        table.add_column("title")
        table.add_column("payload", overflow="fold")
        for row in rows:
            table.add_row(
                str(row.identity),
                row.state,
                row.fire_at.isoformat() if row.fire_at else "-",
                row.title,
                row.payload,
            )
        console.print(table)


@app.command()
def cancel(
    entity_id: str = typer.Argument(...),
    purpose: Optional[str] = typer.Argument(None, help="Omit to cancel every purpose"),
    db: Optional[Path] = _db_option,
) -> None:
    """Cancel one notification, or all of an entity's."""
    from beacon.notifications.identity import derive_id

    with _service(db) as (service, tray):
        if purpose:
            purposes = [purpose]
        else:
            # Shown rows are never rehydrated; match configured purposes too
            held = {row.identity for row in tray.rows()}
            candidates = [e.purpose for e in service.pending() if e.entity_id == entity_id]
            candidates += service.config.registry.purposes
            purposes = [
                p for p in dict.fromkeys(candidates) if derive_id(entity_id, p) in held
            ]
        try:
            ids = [service.cancel(entity_id, p) for p in purposes]
        except BeaconError as e:
            _fail(e.message)
        if not ids:
            console.print(f"[dim]Nothing in the tray for {entity_id}[/dim]")
        for identity in ids:
            console.print(f"[yellow]Cancelled[/yellow] id={identity}")


@app.command("cancel-all")
def cancel_all(db: Optional[Path] = _db_option) -> None:
    """Cancel everything in the local tray."""
    with _service(db) as (service, tray):
        count = len(tray.rows())
        try:
            service.cancel_all()
        except BeaconError as e:
            _fail(e.message)
        console.print(f"[yellow]Cancelled[/yellow] {count} notification(s)")


@app.command()
def tap(
    payload: str = typer.Argument(..., help="Payload string, valid or not"),
    db: Optional[Path] = _db_option,
) -> None:
    """Route a payload as if its notification was tapped."""
    with _service(db) as (service, tray):
        result = service.on_tap(payload)
        style = "green" if result.outcome.value == "dispatched" else "yellow"
        console.print(
            f"[{style}]{result.outcome.value}[/{style}] kind={result.envelope.kind}"
            + (f" [dim]({result.reason})[/dim]" if result.reason else "")
        )
        if result.error:
            _fail(f"Handler failed: {result.error}")


if __name__ == "__main__":
    app()

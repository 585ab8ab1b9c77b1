"""VesselWatch CLI — geofenced vessel anomaly monitoring.

Commands:
  serve        — run the API with both polling timers
  poll         — run detection ticks in the foreground and print anomalies
  status       — query a running server's health and outstanding alerts
  test-alert   — send a test notification to the configured recipients
"""
from __future__ import annotations

import time
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table


app = typer.Typer(
    name="vesselwatch",
    help="Geofenced vessel anomaly monitoring (AIS shutoffs and route deviations).",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(5000, "--port"),
):
    """Run the operator API; detection and watchlist timers start with it."""
    import uvicorn

    console.print(f"VesselWatch API at [cyan]http://{host}:{port}/docs[/cyan] — press Ctrl+C to stop")
    uvicorn.run("vesselwatch.main:app", host=host, port=port)


@app.command("poll")
def poll(
    cycles: int = typer.Option(1, "--cycles", min=1, help="Number of detection ticks to run"),
    interval: float = typer.Option(30.0, "--interval", help="Seconds between ticks"),
):
    """Run detection ticks in the foreground and print what they found."""
    from vesselwatch.monitor import build_monitor

    monitor = build_monitor()
    for n in range(1, cycles + 1):
        with console.status(f"[bold]Polling vessels (tick {n}/{cycles})..."):
            stats = monitor.run_detection()
        _print_tick(console, n, stats)
        if n < cycles:
            time.sleep(interval)

    _print_anomalies(console, monitor)
    if stats.get("status") != "ok":
        raise typer.Exit(1)


@app.command("status")
def status(
    url: str = typer.Option("http://127.0.0.1:5000", "--url", help="Base URL of a running server"),
    api_key: Optional[str] = typer.Option(None, "--api-key", envvar="VESSELWATCH_API_KEY"),
):
    """Show a running server's health and outstanding alerts."""
    import httpx

    headers = {"X-API-Key": api_key} if api_key else {}
    try:
        with httpx.Client(base_url=url, headers=headers, timeout=10.0) as client:
            health = client.get("/health").json()
            alerts = client.get("/api/v1/alerts")
            alerts.raise_for_status()
    except httpx.HTTPError as exc:
        console.print(f"[red]Server not reachable at {url}: {exc}[/red]")
        raise typer.Exit(1)

    polling = "[green]running[/green]" if health.get("polling") else "[yellow]stopped[/yellow]"
    console.print(f"[bold]Server[/bold] v{health.get('version', '?')}  polling: {polling}")

    entries = alerts.json().get("alerts", [])
    if not entries:
        console.print("No outstanding alerts.")
        return
    table = Table(title=f"Outstanding Alerts ({len(entries)})")
    table.add_column("Kind", style="cyan")
    table.add_column("MMSI")
    for entry in entries:
        table.add_row(entry["kind"], entry["entity_id"])
    console.print(table)


@app.command("test-alert")
def test_alert():
    """Send a test notification to the configured alert recipients."""
    from vesselwatch.monitor import build_monitor

    result = build_monitor().send_test_alert()
    if result.success:
        console.print("[green]Test alert sent[/green]")
    else:
        console.print(f"[red]Test alert failed: {result.reason}[/red]")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _print_tick(con: Console, n: int, stats: dict) -> None:
    if stats.get("status") != "ok":
        con.print(f"[yellow]Tick {n}: {stats.get('status')} — {stats.get('error', '')}[/yellow]")
        return
    con.print(
        f"Tick {n}: {stats['fetched']} fetched, {stats['in_region']} in geofence, "
        f"{stats['route_deviations']} deviations, {stats['signal_shutoffs']} shutoffs, "
        f"{stats['alerts_sent']} alerts sent"
    )


def _print_anomalies(con: Console, monitor) -> None:
    snap = monitor.snapshot()
    if not snap.route_deviations and not snap.signal_shutoffs:
        con.print("[green]No anomalies in the latest snapshot.[/green]")
        return

    table = Table(title="Anomalies")
    table.add_column("Kind", style="cyan")
    table.add_column("MMSI")
    table.add_column("Position")
    table.add_column("Detail")
    for d in snap.route_deviations:
        r = d.report
        table.add_row(
            "route deviation", r.entity_id,
            f"{r.latitude:.4f}, {r.longitude:.4f}", f"{d.distance_nm:.1f} nm off track",
        )
    for m in snap.signal_shutoffs:
        r = m.last_report
        table.add_row(
            "signal shutoff", m.entity_id,
            f"{r.latitude:.4f}, {r.longitude:.4f}", "stopped reporting in zone",
        )
    con.print(table)

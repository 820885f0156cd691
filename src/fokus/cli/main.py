"""CLI commands for Fokus using Typer."""

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import date
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from fokus import __version__
from fokus.core.clock import format_countdown, minutes_seconds_to_ms
from fokus.core.config import Config, get_config

# Initialize Typer app
app = typer.Typer(
    name="fokus",
    help="Focus sessions with rewards, plus a timer shared across devices.",
    add_completion=False,
)

timer_app = typer.Typer(
    help="Control the shared timer.",
    add_completion=False,
)
app.add_typer(timer_app, name="timer")

console = Console()


def setup_logging(log_level: str, log_file: Path | None = None) -> None:
    """Configure logging for the application."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )

    # Reduce noise from external libraries
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


@app.command()
def focus(
    minutes: int = typer.Option(
        None,
        "--minutes",
        "-m",
        help="Target minutes (default from config)",
    ),
    task: str = typer.Option(
        None,
        "--task",
        "-t",
        help="Task id to attach to the session",
    ),
) -> None:
    """Run a local focus session. Press Ctrl+C to stop and keep the points.

    Examples:
        fokus focus -m 50 -t write-report
        fokus focus  # default length
    """
    config = get_config()
    config.ensure_directories()
    setup_logging("WARNING", config.log_dir / "fokus.log")

    target = minutes or config.focus.default_minutes

    async def run_focus():
        from fokus.focus import DatabaseRewardLedger, FocusEngine
        from fokus.storage import SessionStore, init_database

        db = await init_database(config.db_path)

        engine = FocusEngine(
            config.focus,
            session_store=SessionStore(db),
            ledger=DatabaseRewardLedger(db),
        )

        def show(state) -> None:
            # Simple status line (overwrite)
            sys.stdout.write(
                f"\r⏱  {state.remaining_display} | "
                f"Points: {state.points_earned} | "
                f"Tab switches: {state.tab_switches} "
                f"({state.progress_percent:.0f}%)    "
            )
            sys.stdout.flush()

        engine.on_tick = show

        try:
            if not await engine.start(target, task_id=task):
                console.print(f"[red]Invalid target: {target} minutes[/red]")
                raise typer.Exit(1)

            console.print(f"[green]Focus session started:[/green] {target} minutes")
            console.print("Press Ctrl+C to stop\n")
            show(engine.state)

            while not engine.state.is_complete:
                await asyncio.sleep(0.5)

            console.print("\n\n[green]Session complete![/green]")

        except asyncio.CancelledError:
            console.print("\n\n[yellow]Stopping focus session...[/yellow]")
        finally:
            session = await engine.stop()
            if session:
                console.print("\n[bold]Session Summary:[/bold]")
                console.print(f"  Focus time: {session.format_duration()}")
                console.print(f"  Points earned: {session.points_earned}")
                console.print(f"  Tab switches: {session.tab_switches}")
                console.print(f"  Completed: {'Yes' if session.completed else 'No'}")
            await db.close()

    try:
        asyncio.run(run_focus())
    except KeyboardInterrupt:
        pass


@app.command()
def history(
    day: str = typer.Option(
        None,
        "--date",
        "-d",
        help="Date in YYYY-MM-DD format (default today)",
    ),
) -> None:
    """Show focus sessions for a day."""
    config = get_config()

    try:
        target_day = date.fromisoformat(day) if day else date.today()
    except ValueError:
        console.print(f"[red]Invalid date: {day}[/red]")
        raise typer.Exit(1)

    async def load_sessions():
        from fokus.storage import SessionStore, init_database

        db = await init_database(config.db_path)
        try:
            return await SessionStore(db).list_for_date(target_day)
        finally:
            await db.close()

    try:
        sessions = asyncio.run(load_sessions())
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if not sessions:
        console.print(f"[dim]No focus sessions on {target_day.isoformat()}[/dim]")
        return

    table = Table(
        title=f"Focus Sessions - {target_day.isoformat()}",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Started")
    table.add_column("Task")
    table.add_column("Focused")
    table.add_column("Points", justify="right")
    table.add_column("Tab Switches", justify="right")
    table.add_column("Status")

    for s in sessions:
        status = "[green]Complete[/green]" if s.completed else "[yellow]Stopped early[/yellow]"
        table.add_row(
            s.start_time.strftime("%H:%M"),
            s.task_id or "[dim]-[/dim]",
            f"{s.format_duration()} / {s.target_minutes}m",
            str(s.points_earned),
            str(s.tab_switches),
            status,
        )

    console.print(table)


@app.command()
def points() -> None:
    """Show the reward point balance."""
    config = get_config()

    async def load_balance():
        from fokus.focus import DatabaseRewardLedger
        from fokus.storage import init_database

        db = await init_database(config.db_path)
        try:
            return await DatabaseRewardLedger(db).balance()
        finally:
            await db.close()

    try:
        balance = asyncio.run(load_balance())
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(Panel(f"[bold]{balance}[/bold] points", title="Reward Balance", border_style="green"))


def _run_timer_command(config: Config, command: str, *args: int) -> None:
    """Connect to the shared timer, issue one command and report the result."""
    from fokus.shared import SharedTimerReconciler, build_store

    async def run():
        reconciler = SharedTimerReconciler(build_store(config.shared), config.shared)
        if not await reconciler.connect():
            return False, reconciler.snapshot()
        try:
            await reconciler.wait_until_synced(timeout=config.shared.write_timeout_seconds)
            ok = await getattr(reconciler, command)(*args)
            return ok, reconciler.snapshot()
        finally:
            await reconciler.close()

    try:
        ok, snapshot = asyncio.run(run())
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if not snapshot["store_available"]:
        console.print(f"[red]{snapshot['error']}[/red]")
        console.print("[dim]Set shared.database_url or FOKUS_SHARED__DATABASE_URL[/dim]")
        raise typer.Exit(1)

    if not ok:
        reason = snapshot["error"] or f"not allowed while {snapshot['status']}"
        console.print(f"[yellow]Timer {command} rejected: {reason}[/yellow]")
        raise typer.Exit(1)

    console.print(
        f"[green]Timer {snapshot['status']}[/green] "
        f"{snapshot['remaining_display']}"
    )


@timer_app.command("set")
def timer_set(
    minutes: int = typer.Argument(..., min=0, help="Minutes"),
    seconds: int = typer.Argument(0, min=0, max=59, help="Seconds"),
) -> None:
    """Set the shared timer duration."""
    _run_timer_command(get_config(), "set_duration", minutes_seconds_to_ms(minutes, seconds))


@timer_app.command("start")
def timer_start() -> None:
    """Start the shared timer."""
    _run_timer_command(get_config(), "start")


@timer_app.command("pause")
def timer_pause() -> None:
    """Pause the shared timer."""
    _run_timer_command(get_config(), "pause")


@timer_app.command("resume")
def timer_resume() -> None:
    """Resume the shared timer."""
    _run_timer_command(get_config(), "resume")


@timer_app.command("reset")
def timer_reset() -> None:
    """Reset the shared timer to its full duration."""
    _run_timer_command(get_config(), "reset")


@timer_app.command("stop")
def timer_stop() -> None:
    """Mark the shared timer completed."""
    _run_timer_command(get_config(), "stop")


@timer_app.command("watch")
def timer_watch() -> None:
    """Follow the shared timer live. Press Ctrl+C to exit."""
    config = get_config()
    setup_logging("WARNING")

    from fokus.shared import SharedTimerReconciler, build_store

    async def watch():
        reconciler = SharedTimerReconciler(build_store(config.shared), config.shared)

        def show(remaining_ms: int) -> None:
            timer = reconciler.timer
            status = timer.status.value if timer else "connecting"
            sync = "synced" if reconciler.is_synced else (reconciler.error or "connecting")
            sys.stdout.write(f"\r⏱  {format_countdown(remaining_ms)} | {status} | {sync}    ")
            sys.stdout.flush()

        def done(timer) -> None:
            who = timer.updated_by or "unknown"
            console.print(f"\n[green]Timer completed[/green] [dim](by {who})[/dim]")

        reconciler.on_tick = show
        reconciler.on_complete = done

        if not await reconciler.connect():
            console.print(f"[red]{reconciler.error}[/red]")
            raise typer.Exit(1)

        console.print(f"[green]Watching shared timer[/green] ({config.shared.timer_key})")
        console.print("Press Ctrl+C to stop\n")
        try:
            while True:
                await asyncio.sleep(1)
        finally:
            await reconciler.close()

    try:
        asyncio.run(watch())
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped watching[/yellow]")


@app.command()
def serve(
    host: str = typer.Option(None, "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(None, "--port", "-p", help="Port to bind to"),
    log_level: str = typer.Option(
        "INFO",
        "--log-level",
        "-l",
        help="Log level (DEBUG, INFO, WARNING, ERROR)",
    ),
) -> None:
    """Serve the focus engine and shared timer over HTTP."""
    config = get_config()
    config.ensure_directories()
    setup_logging(log_level, config.log_dir / "server.log")

    from fokus.web.app import run_server

    host = host or config.web.host
    port = port or config.web.port

    console.print("[green]Starting Fokus API...[/green]")
    console.print(f"Listening on [blue]http://{host}:{port}/api[/blue]")
    console.print("Press Ctrl+C to stop\n")

    try:
        run_server(host, port)
    except KeyboardInterrupt:
        console.print("\n[yellow]Server stopped[/yellow]")


@app.command()
def config_show() -> None:
    """Show current configuration."""
    config = get_config()

    table = Table(title="Fokus Configuration", show_header=True, header_style="bold cyan")
    table.add_column("Setting")
    table.add_column("Value")

    # Paths
    table.add_row("[bold]Paths[/bold]", "")
    table.add_row("  Data Directory", str(config.data_dir))
    table.add_row("  Log Directory", str(config.log_dir))
    table.add_row("  Config File", str(config.config_file))
    table.add_row("  Database", str(config.db_path))

    # Focus
    table.add_row("[bold]Focus[/bold]", "")
    table.add_row("  Default Length", f"{config.focus.default_minutes} min")
    table.add_row("  Points per Minute", str(config.focus.reward_points_per_minute))
    table.add_row("  Tab Switch Penalty", f"{config.focus.tab_switch_penalty} points")
    table.add_row("  Penalty Debounce", f"{config.focus.penalty_debounce_seconds}s")

    # Shared timer
    shared = config.shared
    table.add_row("[bold]Shared Timer[/bold]", "")
    table.add_row("  Backend", shared.backend)
    table.add_row("  Database URL", shared.database_url or "[yellow]Not Set[/yellow]")
    table.add_row("  Auth Token", "***" if shared.auth_token else "[dim]None[/dim]")
    table.add_row("  Timer Key", shared.timer_key)
    table.add_row("  Client ID", shared.client_id)
    table.add_row("  Refresh", f"{shared.refresh_interval_ms}ms")
    table.add_row("  Write Window", f"{shared.write_release_ms}ms")

    # Web
    table.add_row("[bold]HTTP API[/bold]", "")
    table.add_row("  URL", f"http://{config.web.host}:{config.web.port}/api")

    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"Fokus v{__version__}")


@app.callback()
def main_callback() -> None:
    """Fokus - focus sessions with rewards, plus a timer shared across devices."""
    pass


if __name__ == "__main__":
    app()

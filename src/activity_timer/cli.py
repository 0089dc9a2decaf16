"""Command-line interface for the activity timer."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

import typer

from .aggregation import TimeRange
from .categories import CategoryError, find_preset
from .config import DisplaySettings, TimerSettings
from .models import CustomCategory, Mood, ReminderInterval, TimerRecord
from .normalization import normalize_activity_name, normalize_hex_color
from .paths import get_db_path
from .server_runner import run_dashboard
from .store import Store

app = typer.Typer(help="Personal activity timer.")

logger = logging.getLogger(__name__)

DB_OPTION = typer.Option(
    None,
    "--db",
    path_type=Path,
    help="Location of the timer SQLite database.",
)


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@contextmanager
def open_store(db_path: Optional[Path]) -> Iterator[Store]:
    store = Store(db_path or get_db_path())
    try:
        yield store
    finally:
        store.close()


@app.command()
def track(
    activity: str = typer.Argument(..., help="Name of the activity to time."),
    category: Optional[str] = typer.Option(
        None, "--category", "-c", help="Preset or custom category name."
    ),
    reminder: float = typer.Option(
        0.0,
        "--reminder",
        min=0.0,
        help=(
            "Remind every N seconds while the session runs (0 disables). Usual choices: "
            + ", ".join(f"{interval.value:g}" for interval in ReminderInterval if interval.value)
            + "."
        ),
    ),
    tick_seconds: float = typer.Option(
        1.0, "--tick", min=0.1, help="Seconds between timer refreshes."
    ),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Time a session in the foreground; press Ctrl+C to stop and save it."""
    from .achievements import AchievementService
    from .reporting import format_duration
    from .ticker import TimerTicker
    from .timer import CommandResult, SessionTimer

    settings = TimerSettings.from_intervals(tick_seconds=tick_seconds)
    with open_store(db_path) as store:
        timer = SessionTimer(store, settings=settings)

        def announce(snapshot) -> None:
            if snapshot.reminder_due:
                typer.echo(
                    f"Reminder: {snapshot.record.activity_name} has been running for "
                    f"{format_duration(snapshot.elapsed_seconds)}"
                )

        timer.subscribe(announce)
        try:
            started = timer.start(activity, category=category, reminder_interval=reminder)
        except CategoryError as exc:
            raise typer.BadParameter(str(exc), param_hint="--category") from exc
        if started is not CommandResult.OK:
            raise typer.BadParameter("Activity name must not be empty.", param_hint="ACTIVITY")

        typer.echo(f"Timing {timer.active_record.activity_name!r}. Press Ctrl+C to stop.")
        ticker = TimerTicker(timer)
        ticker.start()
        try:
            threading.Event().wait()
        except KeyboardInterrupt:
            logger.info("Interrupted; stopping session.")
        finally:
            ticker.stop()
            record = timer.active_record
            result = timer.stop()

        if result is CommandResult.PERSIST_FAILED:
            typer.echo("Session could not be saved; see the log for details.", err=True)
            raise typer.Exit(code=1)
        typer.echo(f"Saved {record.activity_name!r}: {format_duration(record.total_duration)}")
        for achievement in AchievementService(store).refresh():
            if achievement.is_unlocked:
                typer.echo(f"Achievement unlocked: {achievement.title}")


@app.command()
def history(
    date: Optional[str] = typer.Option(
        None,
        "--date",
        help="Date (YYYY-MM-DD) to list. Defaults to today.",
    ),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """List the sessions started on a specific day."""
    from .reporting import SummaryPrinter

    target = datetime.strptime(date, "%Y-%m-%d") if date else datetime.now()
    with open_store(db_path) as store:
        SummaryPrinter(store).print_history(target.date())


@app.command()
def stats(
    time_range: TimeRange = typer.Option(
        TimeRange.WEEK, "--range", "-r", help="Period to summarize."
    ),
    group_by: str = typer.Option(
        "category", "--by", help="Group totals by 'category' or 'activity'."
    ),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Print totals for the current day, week, month or year."""
    from .reporting import SummaryPrinter

    if group_by not in ("category", "activity"):
        raise typer.BadParameter("Expected 'category' or 'activity'.", param_hint="--by")
    with open_store(db_path) as store:
        SummaryPrinter(store).print_statistics(time_range, datetime.now(), group_by)


@app.command()
def achievements(db_path: Optional[Path] = DB_OPTION) -> None:
    """Recompute and show achievement progress."""
    from .achievements import AchievementService
    from .reporting import SummaryPrinter

    with open_store(db_path) as store:
        service = AchievementService(store)
        service.refresh()
        SummaryPrinter(store).print_achievements(service.list_achievements())


@app.command()
def delete(
    record_id: str = typer.Argument(..., help="Record id or unique id prefix."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Delete a recorded session."""
    from .timer import CommandResult, SessionTimer

    with open_store(db_path) as store:
        record = _find_record(store, record_id)
        if SessionTimer(store).delete_record(record) is not CommandResult.OK:
            typer.echo("Could not delete the record.", err=True)
            raise typer.Exit(code=1)
        typer.echo(f"Deleted {record.activity_name!r} ({record.id[:8]}).")


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Delete all records, activities and achievements. Custom categories are kept."""
    from .timer import CommandResult, SessionTimer

    if not yes:
        typer.confirm(
            "This deletes every recorded session and achievement and cannot be undone. Continue?",
            abort=True,
        )
    with open_store(db_path) as store:
        if SessionTimer(store).clear_history() is not CommandResult.OK:
            typer.echo("Could not clear the stored data.", err=True)
            raise typer.Exit(code=1)
    typer.echo("Cleared all records and achievements.")


@app.command()
def note(
    record_id: str = typer.Argument(..., help="Record id or unique id prefix."),
    text: str = typer.Argument("", help="Note text; empty clears the note."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Attach a note to a recorded session."""
    from .timer import CommandResult, SessionTimer

    with open_store(db_path) as store:
        record = _find_record(store, record_id)
        if SessionTimer(store).set_note(record, text) is not CommandResult.OK:
            raise typer.Exit(code=1)


@app.command()
def mood(
    record_id: str = typer.Argument(..., help="Record id or unique id prefix."),
    value: str = typer.Argument(
        "", help=f"One of: {', '.join(m.value for m in Mood)}; empty clears it."
    ),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Tag a recorded session with a mood."""
    from .timer import CommandResult, SessionTimer

    parsed = Mood.parse(value)
    if value and parsed is None:
        raise typer.BadParameter(f"Unknown mood {value!r}.", param_hint="VALUE")
    with open_store(db_path) as store:
        record = _find_record(store, record_id)
        if SessionTimer(store).set_mood(record, parsed) is not CommandResult.OK:
            raise typer.Exit(code=1)


@app.command()
def categories(db_path: Optional[Path] = DB_OPTION) -> None:
    """List custom categories."""
    with open_store(db_path) as store:
        custom = store.fetch_all(CustomCategory)
    if not custom:
        typer.echo("No custom categories.")
        return
    for category in custom:
        typer.echo(f"{category.name:<24} {category.color}  {category.icon}")


@app.command("add-category")
def add_category(
    name: str = typer.Argument(..., help="Category name."),
    icon: str = typer.Option("star.fill", "--icon", help="Icon name."),
    color: str = typer.Option("#5856D6", "--color", help="Colour as #RRGGBB."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Create a custom category."""
    cleaned = normalize_activity_name(name)
    if cleaned is None:
        raise typer.BadParameter("Category name must not be empty.", param_hint="NAME")
    if find_preset(cleaned):
        typer.echo(
            f"Warning: {cleaned!r} is also a preset category; records cannot be "
            "tagged with it until one of them is renamed.",
            err=True,
        )
    with open_store(db_path) as store:
        existing = {c.name.casefold() for c in store.fetch_all(CustomCategory)}
        if cleaned.casefold() in existing:
            raise typer.BadParameter(f"Category {cleaned!r} already exists.", param_hint="NAME")
        store.insert(CustomCategory(name=cleaned, icon=icon, color=normalize_hex_color(color, "#5856D6")))
        if not store.save():
            raise typer.Exit(code=1)
    typer.echo(f"Added category {cleaned!r}.")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the dashboard."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the dashboard."
    ),
    db_path: Optional[Path] = DB_OPTION,
    tick_seconds: float = typer.Option(
        1.0, "--tick", min=0.1, help="Seconds between timer refreshes."
    ),
    accent_color: str = typer.Option(
        "#007AFF", "--accent-color", help="Colour given to newly seen activities."
    ),
    open_browser: bool = typer.Option(
        True,
        "--open-browser/--no-open-browser",
        help="Automatically launch the dashboard in your default browser.",
    ),
) -> None:
    """Start the local dashboard with the session timer."""
    run_dashboard(
        host=host,
        port=port,
        db_path=db_path or get_db_path(),
        settings=TimerSettings.from_intervals(tick_seconds=tick_seconds),
        display=DisplaySettings(accent_color=normalize_hex_color(accent_color)),
        open_browser=open_browser,
    )


def _find_record(store: Store, record_id: str) -> TimerRecord:
    matches = [
        record
        for record in store.fetch_all(TimerRecord)
        if record.id == record_id or record.id.startswith(record_id)
    ]
    if len(matches) != 1:
        reason = "No record" if not matches else "More than one record"
        raise typer.BadParameter(f"{reason} matches {record_id!r}.", param_hint="RECORD_ID")
    return matches[0]

"""FastAPI application that exposes a local web UI and API for the activity timer."""

from __future__ import annotations

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ConfigDict, Field

from .achievements import AchievementService
from .aggregation import (
    GroupTotal,
    StatisticsSnapshot,
    TimeRange,
    build_statistics,
    history_for_day,
    range_bounds,
)
from .categories import CategoryError, find_custom, find_preset
from .clock import Clock
from .config import DisplaySettings, TimerSettings
from .models import (
    Activity,
    CustomCategory,
    Mood,
    PresetCategory,
    TimerRecord,
    UserAchievement,
)
from .normalization import normalize_activity_name, normalize_hex_color
from .paths import get_db_path
from .refresh import StatisticsRefresher
from .store import Store
from .ticker import TimerTicker
from .timer import CommandResult, SessionTimer, TimerSnapshot

logger = logging.getLogger(__name__)


class StartPayload(BaseModel):
    activity_name: str = Field(..., min_length=1, max_length=200)
    category: Optional[str] = None
    reminder_interval: float = Field(0.0, ge=0)

    model_config = ConfigDict(extra="forbid")


class RecordUpdate(BaseModel):
    note: Optional[str] = Field(None, max_length=2000)
    mood: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class CategoryPayload(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    icon: str = "star.fill"
    color: str = "#5856D6"

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[TimerSettings] = None,
    display: Optional[DisplaySettings] = None,
    clock: Optional[Clock] = None,
    run_ticker: bool = True,
    background_refresh: bool = True,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_db_path = Path(db_path or get_db_path())
    resolved_settings = settings or TimerSettings()
    store = Store(resolved_db_path)
    timer = SessionTimer(
        store, settings=resolved_settings, display=display or DisplaySettings(), clock=clock
    )
    ticker = TimerTicker(timer)
    achievement_service = AchievementService(store, clock=timer.clock)

    def compute(records: list[TimerRecord]) -> dict[TimeRange, StatisticsSnapshot]:
        now = timer.clock.now()
        statistics = {
            time_range: build_statistics(records, time_range, now)
            for time_range in TimeRange
        }
        achievement_service.refresh()
        return statistics

    refresher: StatisticsRefresher[dict[TimeRange, StatisticsSnapshot]] = StatisticsRefresher(
        store, compute, background=background_refresh
    )

    app = FastAPI(title="Activity Timer", version="0.3.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = resolved_db_path
    app.state.store = store
    app.state.timer = timer
    app.state.ticker = ticker
    app.state.refresher = refresher

    static_dir = Path(__file__).parent / "static"
    if static_dir.exists():
        app.mount("/static", StaticFiles(directory=static_dir), name="static")

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        refresher.attach()
        refresher.request()
        if run_ticker:
            ticker.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        ticker.stop()
        if timer.active_record is not None:
            timer.stop()
        refresher.detach()
        refresher.wait_idle(timeout=10)
        store.close()

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        return {
            "ticker_running": request.app.state.ticker.is_running(),
            "database_path": str(request.app.state.db_path),
            "tick_seconds": resolved_settings.tick_interval.total_seconds(),
            "reminder_threshold_seconds": resolved_settings.reminder_threshold.total_seconds(),
        }

    @app.get("/api/timer")
    def timer_state() -> Dict[str, Any]:
        return _snapshot_payload(timer.snapshot())

    @app.post("/api/timer/start")
    def start_timer(payload: StartPayload) -> Dict[str, Any]:
        try:
            result = timer.start(
                payload.activity_name,
                category=payload.category,
                reminder_interval=payload.reminder_interval,
            )
        except CategoryError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _command_response(result, timer.snapshot())

    @app.post("/api/timer/pause")
    def pause_timer() -> Dict[str, Any]:
        return _command_response(timer.pause(), timer.snapshot())

    @app.post("/api/timer/resume")
    def resume_timer() -> Dict[str, Any]:
        return _command_response(timer.resume(), timer.snapshot())

    @app.post("/api/timer/stop")
    def stop_timer() -> Dict[str, Any]:
        record = timer.active_record
        result = timer.stop()
        response = _command_response(result, timer.snapshot())
        if record is not None:
            response["record"] = _record_payload(record)
        return response

    @app.post("/api/timer/background")
    def background_timer() -> Dict[str, Any]:
        return _command_response(timer.enter_background(), timer.snapshot())

    @app.post("/api/timer/foreground")
    def foreground_timer() -> Dict[str, Any]:
        return _command_response(timer.enter_foreground(), timer.snapshot())

    @app.get("/api/records")
    def list_records(
        date: Optional[str] = Query(
            default=None,
            description="Target date in YYYY-MM-DD format.",
        ),
    ) -> Dict[str, Any]:
        target_day = _parse_date(date, timer.clock.now())
        records = history_for_day(store.fetch_all(TimerRecord), target_day)
        return {
            "date": target_day.strftime("%Y-%m-%d"),
            "records": [_record_payload(record) for record in records],
        }

    @app.patch("/api/records/{record_id}")
    def update_record(record_id: str, payload: RecordUpdate) -> Dict[str, Any]:
        record = _get_record(timer, record_id)
        updates = payload.model_dump(exclude_unset=True)
        if "mood" in updates:
            mood = Mood.parse(updates["mood"])
            if updates["mood"] and mood is None:
                raise HTTPException(status_code=400, detail="Unknown mood")
            _raise_for_result(timer.set_mood(record, mood))
        if "note" in updates:
            _raise_for_result(timer.set_note(record, updates["note"]))
        return _record_payload(record)

    @app.delete("/api/records/{record_id}")
    def delete_record(record_id: str) -> Dict[str, Any]:
        record = _get_record(timer, record_id)
        _raise_for_result(timer.delete_record(record))
        return {"deleted": record_id}

    @app.delete("/api/data")
    def clear_data() -> Dict[str, Any]:
        _raise_for_result(timer.clear_history())
        return {"cleared": True}

    @app.get("/api/statistics")
    def statistics(
        range_: TimeRange = Query(TimeRange.WEEK, alias="range"),
        group: str = Query("category", pattern="^(category|activity)$"),
    ) -> Dict[str, Any]:
        now = timer.clock.now()
        latest = refresher.latest
        snapshot = latest.get(range_) if latest else None
        if snapshot is None or not _same_period(range_, snapshot.generated_at, now):
            snapshot = build_statistics(store.fetch_all(TimerRecord), range_, now)
            refresher.request()
        groups = snapshot.by_activity if group == "activity" else snapshot.by_category
        return {
            "range": range_.value,
            "group": group,
            "total_seconds": snapshot.total_seconds,
            "groups": [_group_payload(item) for item in groups],
            "trend": [
                {"start": bucket.start.isoformat(), "seconds": bucket.seconds}
                for bucket in snapshot.trend
            ],
            "generated_at": snapshot.generated_at.isoformat()
            if snapshot.generated_at
            else None,
        }

    @app.get("/api/achievements")
    def list_achievements() -> Dict[str, Any]:
        return {
            "achievements": [
                _achievement_payload(achievement)
                for achievement in achievement_service.list_achievements()
            ]
        }

    @app.get("/api/activities")
    def list_activities() -> Dict[str, Any]:
        return {
            "activities": [
                {"id": a.id, "name": a.name, "color": a.color, "icon": a.icon}
                for a in store.fetch_all(Activity)
            ]
        }

    @app.get("/api/categories")
    def list_categories() -> Dict[str, Any]:
        return {
            "presets": [category.value for category in PresetCategory],
            "custom": [
                {"id": c.id, "name": c.name, "icon": c.icon, "color": c.color}
                for c in store.fetch_all(CustomCategory)
            ],
        }

    @app.post("/api/categories")
    def create_category(payload: CategoryPayload) -> Dict[str, Any]:
        name = normalize_activity_name(payload.name)
        if name is None:
            raise HTTPException(status_code=400, detail="name is required")
        if find_custom(name, store.fetch_all(CustomCategory)):
            raise HTTPException(status_code=400, detail="category already exists")
        category = CustomCategory(
            name=name,
            icon=payload.icon,
            color=normalize_hex_color(payload.color, "#5856D6"),
        )
        store.insert(category)
        result = store.save()
        if not result.ok:
            raise HTTPException(status_code=500, detail="Failed to persist category.")
        return {
            "category": {
                "id": category.id,
                "name": category.name,
                "icon": category.icon,
                "color": category.color,
            },
            "shadows_preset": find_preset(name) is not None,
        }

    @app.delete("/api/categories/{name}")
    def delete_category(name: str) -> Dict[str, Any]:
        category = find_custom(name, store.fetch_all(CustomCategory))
        if category is None:
            raise HTTPException(status_code=404, detail="Category not found")
        store.delete(category)
        if not store.save().ok:
            raise HTTPException(status_code=500, detail="Failed to delete category.")
        return {"deleted": category.name}

    @app.get("/")
    def index(request: Request):
        index_path = (Path(__file__).parent / "static" / "index.html").resolve()
        if not index_path.exists():
            raise HTTPException(status_code=404, detail="UI not found")
        return FileResponse(index_path)

    return app


def _parse_date(value: Optional[str], now: datetime) -> date:
    if not value:
        return now.date()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid date format") from exc


def _same_period(time_range: TimeRange, generated_at: Optional[datetime], now: datetime) -> bool:
    if generated_at is None:
        return False
    return range_bounds(time_range, generated_at) == range_bounds(time_range, now)


def _get_record(timer: SessionTimer, record_id: str) -> TimerRecord:
    active = timer.active_record
    if active is not None and active.id == record_id:
        return active
    record = timer.store.get(TimerRecord, record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Record not found")
    return record


def _raise_for_result(result: CommandResult) -> None:
    if result is CommandResult.INVALID_STATE:
        raise HTTPException(status_code=409, detail="Not allowed in the current timer state")
    if result is CommandResult.PERSIST_FAILED:
        raise HTTPException(status_code=500, detail="Failed to persist changes")


def _command_response(result: CommandResult, snapshot: TimerSnapshot) -> Dict[str, Any]:
    if result is CommandResult.INVALID_STATE:
        raise HTTPException(status_code=409, detail="Not allowed in the current timer state")
    payload = _snapshot_payload(snapshot)
    payload["result"] = result.value
    return payload


def _snapshot_payload(snapshot: TimerSnapshot) -> Dict[str, Any]:
    return {
        "state": snapshot.state.value,
        "elapsed_seconds": snapshot.elapsed_seconds,
        "reminder_due": snapshot.reminder_due,
        "in_background": snapshot.in_background,
        "record": _record_payload(snapshot.record) if snapshot.record else None,
    }


def _record_payload(record: TimerRecord) -> Dict[str, Any]:
    reminder = record.reminder
    return {
        "id": record.id,
        "activity_name": record.activity_name,
        "category": record.category_label,
        "category_kind": record.category.kind.value if record.category else None,
        "start_time": record.start_time.isoformat(),
        "end_time": record.end_time.isoformat() if record.end_time else None,
        "total_duration": record.total_duration,
        "is_active": record.is_active,
        "pause_intervals": [
            {
                "pause_time": interval.pause_time.isoformat(),
                "resume_time": interval.resume_time.isoformat()
                if interval.resume_time
                else None,
            }
            for interval in record.pause_intervals
        ],
        "note": record.note,
        "mood": record.mood.value if record.mood else None,
        "reminder": {
            "interval_seconds": reminder.interval_seconds,
            "next_trigger_time": reminder.next_trigger_time.isoformat()
            if reminder.next_trigger_time
            else None,
            "enabled": reminder.enabled,
        }
        if reminder
        else None,
    }


def _group_payload(group: GroupTotal) -> Dict[str, Any]:
    return {"label": group.label, "seconds": group.seconds, "count": group.count}


def _achievement_payload(achievement: UserAchievement) -> Dict[str, Any]:
    return {
        "id": achievement.id,
        "key": achievement.key,
        "title": achievement.title,
        "description": achievement.description,
        "icon": achievement.icon,
        "is_unlocked": achievement.is_unlocked,
        "unlock_date": achievement.unlock_date.isoformat()
        if achievement.unlock_date
        else None,
        "progress": achievement.progress,
    }

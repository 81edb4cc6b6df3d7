from __future__ import annotations
import datetime
import json
import logging
from typing import Any, Optional
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from catalog import find_exercise, template_order
from db import Store
from errors import InvalidBackupFormat
from models import Snapshot, TopSet, utcnow
from stats_service import StatisticsService
from tools import MathTools

logger = logging.getLogger(__name__)

COACHING_REQUEST = (
    "Please summarise this session and tell me what to adjust next time for "
    "each exercise (load/reps/sets), and any weekly pattern if you see one."
)
DATE_FORMAT = "%a, %b %d, %Y, %H:%M"
MISSING = "—"


class ReportService:
    """Build the plain-text workout report and full backups."""

    def __init__(
        self, store: Store, stats: StatisticsService, timezone: str = "UTC"
    ) -> None:
        self.store = store
        self.stats = stats
        self.tz = ZoneInfo(timezone)

    def format_date(self, value: datetime.datetime) -> str:
        return value.astimezone(self.tz).strftime(DATE_FORMAT)

    @staticmethod
    def format_top(top: Optional[TopSet]) -> str:
        if top is None:
            return MISSING
        return f"{MathTools.format_weight(top.weight_kg)}kg×{top.reps}"

    async def build_report(self, workout_id: str) -> str:
        """Return the report for ``workout_id`` as newline separated text.

        Exercises appear in template order; logs for exercises the template
        does not list are left out. "Last" is the log finished immediately
        before the reported one and "Best" is the all-time best top set.
        """
        workout = await self.store.workouts.get(workout_id)
        if workout is None:
            raise ValueError("workout not found")
        logs = {
            log.exercise_id: log
            for log in await self.store.exercise_logs.fetch_for_workout(workout_id)
        }
        duration = MathTools.duration_minutes(workout.started_at, workout.finished_at)

        out = [
            "WORKOUT REPORT",
            f"Template: {workout.template_name}",
            f"Started: {self.format_date(workout.started_at)}",
            "Finished: "
            + (self.format_date(workout.finished_at) if workout.finished_at else MISSING),
            f"Duration: {duration} min",
            "",
        ]

        cardio = workout.cardio
        if cardio is not None and cardio.type:
            line = f"- {cardio.type}: {cardio.minutes} min"
            if cardio.notes:
                line += f" — {cardio.notes}"
            out.extend(["CARDIO", line, ""])

        out.append("EXERCISES")
        for exercise_id in template_order(workout.template_id):
            log = logs.get(exercise_id)
            if log is None:
                continue
            exercise = find_exercise(exercise_id)
            name, group = (exercise.name, exercise.group) if exercise else (exercise_id, "?")
            stats = await self.stats.compute_stats(exercise_id)
            prev = await self.stats.previous_log(exercise_id, log.finished_at)

            top = StatisticsService.top_set(log)
            volume = MathTools.round_half_up(StatisticsService.volume(log))
            out.append(f"- {name} ({group})")
            out.append(
                f"  Today: top {self.format_top(top)} | Sets: {len(log.sets)} | Volume: {volume}kg"
            )
            last_line = f"  Last: {self.format_top(StatisticsService.top_set(prev) if prev else None)}"
            if prev is not None:
                last_line += f" ({self.format_date(prev.finished_at)})"
            out.append(last_line)
            out.append(f"  Best: {self.format_top(stats.best.top if stats.best else None)}")
            logged = "  |  ".join(
                f"{MathTools.format_weight(s.weight_kg)}×{s.reps}" for s in log.sets
            )
            out.append(f"  Sets logged: {logged or MISSING}")
            if log.notes:
                out.append(f"  Notes: {log.notes}")
            action = await self.store.actions.get(exercise_id)
            if action is not None and action.text:
                out.append(f"  Action next time: {action.text}")
            out.append("")

        out.append("COACHING REQUEST")
        out.append(COACHING_REQUEST)
        return "\n".join(out)

    async def build_snapshot(self, now: datetime.datetime | None = None) -> Snapshot:
        return Snapshot(
            exported_at=now or utcnow(),
            workouts=await self.store.get_all("workouts"),
            exercise_logs=await self.store.get_all("exerciseLogs"),
            actions=await self.store.get_all("actions"),
            settings=await self.store.get("settings"),
        )

    @staticmethod
    def dump_snapshot(snapshot: Snapshot) -> str:
        return json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False)

    @staticmethod
    def backup_filename(now: datetime.datetime | None = None) -> str:
        stamp = (now or utcnow()).date().isoformat()
        return f"workout-backup-{stamp}.json"

    @staticmethod
    def parse_snapshot(data: Any) -> Snapshot:
        """Validate a backup given as JSON text, bytes or a decoded mapping."""
        if isinstance(data, Snapshot):
            return data
        if isinstance(data, (bytes, bytearray)):
            try:
                data = data.decode("utf-8")
            except UnicodeDecodeError as e:
                raise InvalidBackupFormat(f"backup is not UTF-8 text: {e}") from e
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as e:
                raise InvalidBackupFormat(f"backup is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise InvalidBackupFormat("backup must be a JSON object")
        try:
            return Snapshot.model_validate(data)
        except ValidationError as e:
            raise InvalidBackupFormat(str(e)) from e

    async def restore_snapshot(self, data: Any) -> Snapshot:
        """Replace every collection with the contents of a backup.

        The backup is validated before anything is deleted; once the wipe
        has succeeded the previous contents are gone.
        """
        snapshot = self.parse_snapshot(data)
        await self.store.wipe_all()
        await self.store.put_many("workouts", snapshot.workouts)
        await self.store.put_many("exerciseLogs", snapshot.exercise_logs)
        await self.store.put_many("actions", snapshot.actions)
        await self.store.put("settings", snapshot.settings)
        self.stats.clear_cache()
        logger.info(
            "restored backup from %s: %d workouts, %d exercise logs, %d actions",
            snapshot.exported_at.isoformat(),
            len(snapshot.workouts),
            len(snapshot.exercise_logs),
            len(snapshot.actions),
        )
        return snapshot

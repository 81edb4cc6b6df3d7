from __future__ import annotations
import datetime
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, NamedTuple, Optional

from catalog import CARDIO_TEMPLATE_ID, find_exercise, find_template
from db import Store
from errors import SessionClosedError
from models import (
    Action,
    Cardio,
    ExerciseLog,
    ExerciseStats,
    SetEntry,
    Snapshot,
    Workout,
    as_utc,
    utcnow,
)
from recommendation_service import ProgressionRules, RecommendationService
from report_service import ReportService
from settings_schema import SettingsSchema, merge_settings
from stats_service import StatisticsService

logger = logging.getLogger(__name__)


@dataclass
class ExerciseDraft:
    """Unsaved set entries for the exercise currently being logged."""

    workout_id: str
    exercise_id: str
    set_entries: List[SetEntry] = field(default_factory=list)
    notes: str = ""
    default_reps: int = 10
    max_weight_kg: float = 200.0

    @classmethod
    def blank(
        cls, workout_id: str, exercise_id: str, settings: SettingsSchema
    ) -> "ExerciseDraft":
        draft = cls(
            workout_id,
            exercise_id,
            default_reps=settings.reps_default,
            max_weight_kg=settings.max_weight_kg,
        )
        draft.resize(settings.sets_default)
        return draft

    def resize(self, count: int) -> None:
        """Replace the entries with ``count`` blank sets."""
        if count < 0:
            raise ValueError("set count must be non-negative")
        self.set_entries = [
            SetEntry(set_index=i + 1, weight_kg=0.0, reps=self.default_reps)
            for i in range(count)
        ]

    def update_set(
        self,
        set_index: int,
        weight_kg: float | None = None,
        reps: int | None = None,
    ) -> SetEntry:
        """Change one entry; ``set_index`` is 1-based."""
        if not 1 <= set_index <= len(self.set_entries):
            raise ValueError(f"set {set_index} out of range")
        if weight_kg is not None and weight_kg > self.max_weight_kg:
            raise ValueError(
                f"weight {weight_kg} kg exceeds the {self.max_weight_kg} kg limit"
            )
        current = self.set_entries[set_index - 1]
        entry = SetEntry(
            set_index=set_index,
            weight_kg=current.weight_kg if weight_kg is None else weight_kg,
            reps=current.reps if reps is None else reps,
        )
        self.set_entries[set_index - 1] = entry
        return entry

    def to_log(self, finished_at: datetime.datetime) -> ExerciseLog:
        return ExerciseLog(
            workout_id=self.workout_id,
            exercise_id=self.exercise_id,
            finished_at=finished_at,
            notes=self.notes.strip(),
            sets=[
                SetEntry(set_index=i + 1, weight_kg=s.weight_kg, reps=s.reps)
                for i, s in enumerate(self.set_entries)
            ],
        )


@dataclass
class WorkoutSession:
    """The in-progress workout and the exercise being edited."""

    workout: Workout
    exercise_id: Optional[str] = None
    draft: Optional[ExerciseDraft] = None
    closed: bool = False

    def ensure_open(self) -> None:
        if self.closed:
            raise SessionClosedError(f"workout {self.workout.id} is already finished")


class ExerciseView(NamedTuple):
    draft: ExerciseDraft
    stats: ExerciseStats
    saved_action: Optional[str]


class SessionService:
    """Operations offered to user interfaces.

    Stateful calls take the :class:`WorkoutSession` explicitly; the only
    state kept here is the per-exercise stats cache.
    """

    def __init__(
        self,
        store: Store,
        timezone: str = "UTC",
        clock: Callable[[], datetime.datetime] = utcnow,
        settings_overrides: dict | None = None,
    ) -> None:
        self.store = store
        self.stats = StatisticsService(store.exercise_logs)
        self.reports = ReportService(store, self.stats, timezone)
        self.clock = lambda: as_utc(clock())
        self.settings_overrides = dict(settings_overrides or {})

    async def load_settings(self) -> SettingsSchema:
        stored = await self.store.get("settings")
        return merge_settings(stored.to_dict(), self.settings_overrides)

    async def save_settings(self, **changes: Any) -> SettingsSchema:
        stored = await self.store.get("settings")
        updated = merge_settings(stored.to_dict(), changes)
        await self.store.put("settings", updated)
        return updated

    async def _new_workout_id(self, now: datetime.datetime) -> str:
        stamp = int(now.timestamp() * 1000)
        while await self.store.get("workouts", f"w_{stamp}") is not None:
            stamp += 1
        return f"w_{stamp}"

    async def start_workout(self, template_id: str) -> WorkoutSession:
        template = find_template(template_id)
        if template is None:
            raise ValueError(f"unknown template: {template_id}")
        now = self.clock()
        workout = Workout(
            id=await self._new_workout_id(now),
            template_id=template.id,
            template_name=template.name,
            started_at=now,
        )
        await self.store.put("workouts", workout)
        logger.info("started workout %s (%s)", workout.id, template.name)
        return WorkoutSession(workout)

    async def start_cardio_only(self) -> WorkoutSession:
        return await self.start_workout(CARDIO_TEMPLATE_ID)

    async def resume_workout(self, workout_id: str) -> WorkoutSession:
        workout = await self.store.get("workouts", workout_id)
        if workout is None:
            raise ValueError("workout not found")
        return WorkoutSession(workout)

    async def save_cardio(
        self,
        session: WorkoutSession,
        cardio_type: str,
        minutes: int = 0,
        notes: str = "",
    ) -> Optional[Cardio]:
        """Attach cardio to the workout; an empty ``cardio_type`` removes it."""
        session.ensure_open()
        cardio = None
        if cardio_type.strip():
            cardio = Cardio(type=cardio_type.strip(), minutes=minutes, notes=notes.strip())
        updated = session.workout.model_copy(update={"cardio": cardio})
        await self.store.put("workouts", updated)
        session.workout = updated
        return cardio

    async def open_exercise(
        self, session: WorkoutSession, exercise_id: str
    ) -> ExerciseView:
        session.ensure_open()
        if find_exercise(exercise_id) is None:
            raise ValueError(f"unknown exercise: {exercise_id}")
        settings = await self.load_settings()
        draft = ExerciseDraft.blank(session.workout.id, exercise_id, settings)
        stats = await self.stats.compute_stats(exercise_id)
        action = await self.load_action(exercise_id)
        session.exercise_id = exercise_id
        session.draft = draft
        return ExerciseView(draft, stats, action)

    async def save_exercise_log(
        self, session: WorkoutSession, draft: ExerciseDraft | None = None
    ) -> ExerciseLog:
        """Persist a draft, replacing any earlier log of the same exercise."""
        session.ensure_open()
        draft = draft or session.draft
        if draft is None:
            raise ValueError("no exercise draft to save")
        if draft.workout_id != session.workout.id:
            raise ValueError("draft belongs to another workout")
        limit = (await self.load_settings()).max_weight_kg
        if any(s.weight_kg > limit for s in draft.set_entries):
            raise ValueError(f"weights above the {limit} kg limit cannot be saved")
        log = draft.to_log(self.clock())
        await self.store.put("exerciseLogs", log)
        self.stats.invalidate(log.exercise_id)
        logger.info(
            "saved %s for workout %s (%d sets)",
            log.exercise_id,
            log.workout_id,
            len(log.sets),
        )
        return log

    async def request_suggestion(
        self, session: WorkoutSession, exercise_id: str
    ) -> str:
        """Suggest what to do next time for ``exercise_id``.

        Uses the open draft when it is for this exercise, otherwise the log
        already saved for it in this workout.
        """
        if session.draft is not None and session.draft.exercise_id == exercise_id:
            entries = list(session.draft.set_entries)
        else:
            log = await self.store.get("exerciseLogs", (session.workout.id, exercise_id))
            entries = list(log.sets) if log is not None else []
        stats = await self.stats.compute_stats(exercise_id)
        rules = ProgressionRules.from_settings(await self.load_settings())
        return RecommendationService(rules).suggest(entries, stats)

    async def save_action(self, exercise_id: str, text: str) -> Action:
        action = Action(exercise_id=exercise_id, text=text.strip(), updated_at=self.clock())
        await self.store.put("actions", action)
        return action

    async def load_action(self, exercise_id: str) -> Optional[str]:
        action = await self.store.get("actions", exercise_id)
        if action is None or not action.text:
            return None
        return action.text

    async def finish_workout(self, session: WorkoutSession) -> str:
        """Stamp the finish time once, close the session and return the report."""
        session.ensure_open()
        if not session.workout.is_finished:
            updated = session.workout.model_copy(update={"finished_at": self.clock()})
            await self.store.put("workouts", updated)
            session.workout = updated
            logger.info("finished workout %s", updated.id)
        report = await self.reports.build_report(session.workout.id)
        session.closed = True
        session.exercise_id = None
        session.draft = None
        return report

    async def build_report(self, workout_id: str) -> str:
        return await self.reports.build_report(workout_id)

    async def list_history(self) -> List[Workout]:
        workouts = await self.store.get_all("workouts")
        workouts.sort(key=lambda w: w.started_at, reverse=True)
        return workouts

    async def delete_workout(self, workout_id: str) -> None:
        exercise_ids = await self.store.workouts.delete_cascade(workout_id)
        for exercise_id in exercise_ids:
            self.stats.invalidate(exercise_id)
        logger.info(
            "deleted workout %s and %d exercise logs", workout_id, len(exercise_ids)
        )

    async def export_snapshot(self) -> Snapshot:
        return await self.reports.build_snapshot(self.clock())

    async def import_snapshot(self, doc: Any) -> Snapshot:
        return await self.reports.restore_snapshot(doc)

    async def clear_all(self) -> None:
        await self.store.wipe_all()
        self.stats.clear_cache()

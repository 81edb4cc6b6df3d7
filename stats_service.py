from __future__ import annotations
import datetime
import logging
from typing import List, Optional

from db import AsyncExerciseLogRepository
from models import (
    BestPerformance,
    ExerciseLog,
    ExerciseStats,
    LastPerformance,
    TopSet,
)
from tools import MathTools

logger = logging.getLogger(__name__)


class StatisticsService:
    """Compute per-exercise "last" and "best" performance from logged sets."""

    def __init__(self, log_repo: AsyncExerciseLogRepository) -> None:
        self.logs = log_repo
        self._cache: dict[str, ExerciseStats] = {}

    def clear_cache(self) -> None:
        """Clear any cached statistics."""
        self._cache.clear()

    def invalidate(self, exercise_id: str) -> None:
        """Drop the cached statistics of one exercise."""
        if self._cache.pop(exercise_id, None) is not None:
            logger.debug("stats cache invalidated for %s", exercise_id)

    def is_cached(self, exercise_id: str) -> bool:
        return exercise_id in self._cache

    @staticmethod
    def top_set(log: ExerciseLog) -> Optional[TopSet]:
        return MathTools.top_set(log.sets)

    @staticmethod
    def volume(log: ExerciseLog) -> float:
        return MathTools.volume(log.sets)

    async def _finished_logs(self, exercise_id: str) -> List[ExerciseLog]:
        """Return finished logs of ``exercise_id`` ordered newest first."""
        logs = [
            log
            for log in await self.logs.fetch_for_exercise(exercise_id)
            if log.finished_at is not None
        ]
        logs.sort(key=lambda log: log.finished_at, reverse=True)
        return logs

    @staticmethod
    def summarize(logs: List[ExerciseLog]) -> ExerciseStats:
        """Build stats from logs already ordered newest first.

        ``best`` keeps the first log seen on an exact tie, so equal top sets
        report the most recent session.
        """
        if not logs:
            return ExerciseStats()
        latest = logs[0]
        latest_top = MathTools.top_set(latest.sets)
        last = None
        if latest_top is not None:
            last = LastPerformance(latest_top, len(latest.sets), latest.finished_at)

        best: Optional[BestPerformance] = None
        for log in logs:
            top = MathTools.top_set(log.sets)
            if top is None:
                continue
            if best is None or MathTools.beats(top, best.top):
                best = BestPerformance(top, log.finished_at)
        return ExerciseStats(last=last, best=best)

    async def compute_stats(self, exercise_id: str) -> ExerciseStats:
        cached = self._cache.get(exercise_id)
        if cached is not None:
            logger.debug("stats cache hit for %s", exercise_id)
            return cached
        stats = self.summarize(await self._finished_logs(exercise_id))
        self._cache[exercise_id] = stats
        return stats

    async def previous_log(
        self, exercise_id: str, before: Optional[datetime.datetime]
    ) -> Optional[ExerciseLog]:
        """Return the latest log of ``exercise_id`` finished strictly before ``before``."""
        if before is None:
            return None
        for log in await self._finished_logs(exercise_id):
            if log.finished_at < before:
                return log
        return None

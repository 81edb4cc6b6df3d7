import math
import datetime
from typing import Iterable, Optional

from models import SetEntry, TopSet


class MathTools:
    """Provides essential mathematical utilities for workout calculations."""

    @staticmethod
    def top_set(entries: Iterable[SetEntry]) -> Optional[TopSet]:
        """Return the heaviest set, ties broken by more reps.

        Returns ``None`` when ``entries`` is empty.
        """
        best: Optional[TopSet] = None
        for entry in entries:
            candidate = TopSet(float(entry.weight_kg), int(entry.reps))
            if best is None or MathTools.beats(candidate, best):
                best = candidate
        return best

    @staticmethod
    def beats(candidate: TopSet, current: TopSet) -> bool:
        """Return True if ``candidate`` is strictly better than ``current``."""
        if candidate.weight_kg != current.weight_kg:
            return candidate.weight_kg > current.weight_kg
        return candidate.reps > current.reps

    @staticmethod
    def volume(entries: Iterable[SetEntry]) -> float:
        """Compute training volume as the sum of weight times reps."""
        vol = 0.0
        for entry in entries:
            vol += entry.weight_kg * entry.reps
        return vol

    @staticmethod
    def round_half_up(value: float) -> int:
        """Round to the nearest integer with halves rounded up."""
        return int(math.floor(value + 0.5))

    @staticmethod
    def duration_minutes(
        start: datetime.datetime, end: Optional[datetime.datetime]
    ) -> int:
        """Return whole minutes between ``start`` and ``end``, never negative.

        An open workout (``end`` is None) lasts zero minutes.
        """
        finish = end or start
        minutes = (finish - start).total_seconds() / 60.0
        return max(0, MathTools.round_half_up(minutes))

    @staticmethod
    def format_weight(weight: float) -> str:
        """Format a weight at full precision without a trailing ``.0``."""
        text = repr(float(weight))
        return text[:-2] if text.endswith(".0") else text

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable

from models import ExerciseStats, SetEntry
from settings_schema import SettingsSchema
from tools import MathTools


@dataclass(frozen=True)
class ProgressionRules:
    """Numbers used by the progression suggestion."""

    weight_increment_kg: float = 2.5
    rep_target: int = 10
    rep_nudge: int = 1
    target_sets: int = 4

    @classmethod
    def from_settings(cls, settings: SettingsSchema) -> "ProgressionRules":
        return cls(
            weight_increment_kg=settings.weight_increment_kg,
            rep_target=settings.rep_target,
            rep_nudge=settings.rep_nudge,
            target_sets=settings.sets_default,
        )


class RecommendationService:
    """Generate a "next time" suggestion from today's sets and past stats.

    :meth:`suggest` is pure: it performs no I/O and returns the same text
    for the same inputs.
    """

    def __init__(self, rules: ProgressionRules | None = None) -> None:
        self.rules = rules or ProgressionRules()

    def _scheme(self) -> str:
        return f"{self.rules.target_sets}×{self.rules.rep_target}"

    def _increment(self) -> str:
        return MathTools.format_weight(self.rules.weight_increment_kg)

    def _reps(self, n: int) -> str:
        return "rep" if n == 1 else "reps"

    def suggest(self, today: Iterable[SetEntry], stats: ExerciseStats) -> str:
        rules = self.rules
        top_today = MathTools.top_set(today)
        if top_today is None:
            return f"aim for {self._scheme()} with clean form."

        if stats.last is None:
            if top_today.reps >= rules.rep_target:
                return (
                    f"add +{self._increment()} kg next time and aim for "
                    f"{self._scheme()} (or as close as possible)"
                )
            return (
                f"keep weight the same and add +{rules.rep_nudge}–{rules.rep_nudge + 1} "
                "reps on the first set."
            )

        last = stats.last.top
        improved = top_today.weight_kg > last.weight_kg or (
            top_today.weight_kg == last.weight_kg and top_today.reps >= last.reps
        )
        if improved:
            if top_today.reps >= rules.rep_target:
                return (
                    f"+{self._increment()} kg if sets 1–2 can still hit "
                    f"{rules.rep_target} reps."
                )
            return (
                f"keep the same weight, add +{rules.rep_nudge} "
                f"{self._reps(rules.rep_nudge)} on set 1, then match across sets."
            )

        if last.reps >= rules.rep_target:
            return (
                f"try to match last time; if not, drop {self._increment()} kg "
                f"and hit {self._scheme()}."
            )
        return (
            "keep weight the same, aim to beat last time's top set by "
            f"+{rules.rep_nudge} {self._reps(rules.rep_nudge)}."
        )

from __future__ import annotations
import datetime
import logging
from typing import Dict, List, Optional

from aggregator import StreakPolicy, StreakUnit, WorkoutAggregator
from constants import (
    DASHBOARD_RECENT_WORKOUTS,
    DASHBOARD_SUMMARY_EXERCISES,
    LIST_SUMMARY_EXERCISES,
    MOVEMENT_CATEGORIES,
    get_category_color,
    get_category_label,
)
from db import (
    ExerciseRepository,
    SetRepository,
    SettingsRepository,
    WorkoutRepository,
)
from models import Exercise, Workout, WorkoutSet

logger = logging.getLogger(__name__)


def exercise_to_dict(exercise: Exercise) -> Dict[str, object]:
    return {
        "id": exercise.id,
        "name": exercise.name,
        "category": exercise.category,
        "category_label": get_category_label(exercise.category),
        "category_color": get_category_color(exercise.category),
        "notes": exercise.notes,
    }


def set_to_dict(workout_set: WorkoutSet) -> Dict[str, object]:
    return {
        "id": workout_set.id,
        "exercise_id": workout_set.exercise_id,
        "reps": workout_set.reps,
        "weight": workout_set.weight,
        "rpe": workout_set.rpe,
    }


class StatisticsService:
    """Compute dashboard and workout statistics from stored workouts."""

    def __init__(
        self,
        workout_repo: WorkoutRepository,
        exercise_repo: ExerciseRepository,
        set_repo: SetRepository,
        settings_repo: SettingsRepository | None = None,
    ) -> None:
        self.workouts = workout_repo
        self.exercises = exercise_repo
        self.sets = set_repo
        self.settings = settings_repo

    def streak_policy(self) -> StreakPolicy:
        """Return the streak policy configured in settings."""
        if self.settings is None:
            return StreakPolicy(StreakUnit.DAY, 1)
        unit = self.settings.get_text("streak_unit", "day")
        min_workouts = self.settings.get_int("streak_min_workouts", 1)
        return StreakPolicy(unit, min_workouts)

    def weight_unit(self) -> str:
        if self.settings is None:
            return "kg"
        return self.settings.get_text("weight_unit", "kg")

    def _recent_limit(self) -> int:
        if self.settings is None:
            return DASHBOARD_RECENT_WORKOUTS
        return self.settings.get_int("recent_workouts_limit", DASHBOARD_RECENT_WORKOUTS)

    def _lookback_snapshot(
        self, policy: StreakPolicy, today: datetime.date
    ) -> List[Workout]:
        step = 1 if policy.unit is StreakUnit.DAY else 7
        first = WorkoutAggregator.bucket_key(today, policy.unit) - datetime.timedelta(
            days=step * (policy.max_lookback - 1)
        )
        return self.workouts.fetch_snapshot(start_date=first)

    def streak(
        self,
        unit: str | None = None,
        min_workouts: int | None = None,
        today: Optional[datetime.date] = None,
    ) -> Dict[str, object]:
        """Return the streak for ``unit``/``min_workouts`` or the configured policy."""
        configured = self.streak_policy()
        policy = StreakPolicy(
            unit or configured.unit,
            min_workouts if min_workouts is not None else configured.min_workouts,
        )
        today = today or datetime.date.today()
        logger.debug("computing streak with %r for %s", policy, today)
        workouts = self._lookback_snapshot(policy, today)
        return {
            "unit": policy.unit.value,
            "min_workouts": policy.min_workouts,
            "streak": WorkoutAggregator.streak_for_policy(workouts, today, policy),
        }

    def workout_summary(
        self, workout: Workout, exercise_limit: int = LIST_SUMMARY_EXERCISES
    ) -> Dict[str, object]:
        counts, more = WorkoutAggregator.exercise_counts(workout.sets, exercise_limit)
        return {
            "id": workout.id,
            "date": workout.date.isoformat(),
            "notes": workout.notes,
            "sets": len(workout.sets),
            "volume": round(WorkoutAggregator.compute_volume(workout.sets), 2),
            "exercises": [
                {**exercise_to_dict(ex), "sets": n} for ex, n in counts
            ],
            "more": more,
        }

    def workout_detail(self, workout_id: str) -> Dict[str, object]:
        """Return a workout with its sets grouped by exercise."""
        workout = self.workouts.fetch_workout(workout_id)
        groups = WorkoutAggregator.group_sets_by_exercise(workout.sets)
        return {
            "id": workout.id,
            "date": workout.date.isoformat(),
            "notes": workout.notes,
            "total_sets": len(workout.sets),
            "exercise_count": len(groups),
            "volume": round(WorkoutAggregator.compute_volume(workout.sets), 2),
            "weight_unit": self.weight_unit(),
            "groups": [
                {
                    "exercise": exercise_to_dict(group.exercise),
                    "volume": round(WorkoutAggregator.compute_volume(group.sets), 2),
                    "sets": [set_to_dict(s) for s in group.sets],
                }
                for group in groups.values()
            ],
        }

    def workout_list(
        self,
        start_date: str | None = None,
        end_date: str | None = None,
        limit: int | None = None,
    ) -> List[Dict[str, object]]:
        snapshot = self.workouts.fetch_snapshot(start_date, end_date, limit)
        return [self.workout_summary(w) for w in snapshot]

    def volume(
        self, start_date: str | None = None, end_date: str | None = None
    ) -> Dict[str, object]:
        snapshot = self.workouts.fetch_snapshot(start_date, end_date)
        return {
            "start_date": start_date,
            "end_date": end_date,
            "workouts": len(snapshot),
            "sets": WorkoutAggregator.total_set_count(snapshot),
            "volume": round(WorkoutAggregator.total_volume(snapshot), 2),
            "weight_unit": self.weight_unit(),
        }

    def week_summary(self, today: Optional[datetime.date] = None) -> Dict[str, object]:
        """Return workouts and volume of the Sunday-start week containing ``today``."""
        today = today or datetime.date.today()
        start = WorkoutAggregator.week_window_start(today)
        end = start + datetime.timedelta(days=7)
        snapshot = self.workouts.fetch_snapshot(start_date=start, end_date=end)
        return {
            "week_start": start.date().isoformat(),
            "workouts": len(snapshot),
            "volume": round(WorkoutAggregator.total_volume(snapshot), 2),
            "weight_unit": self.weight_unit(),
        }

    def dashboard(self, today: Optional[datetime.date] = None) -> Dict[str, object]:
        """Return the figures shown on the dashboard."""
        today = today or datetime.date.today()
        policy = self.streak_policy()
        history = self._lookback_snapshot(policy, today)
        recent = self.workouts.fetch_snapshot(limit=self._recent_limit())
        return {
            "workouts_this_week": WorkoutAggregator.workouts_this_week(history, today),
            "total_sets": self.sets.count(),
            "exercise_count": self.exercises.count(),
            "streak": WorkoutAggregator.streak_for_policy(history, today, policy),
            "streak_unit": policy.unit.value,
            "streak_min_workouts": policy.min_workouts,
            "recent_volume": round(WorkoutAggregator.total_volume(recent), 2),
            "weight_unit": self.weight_unit(),
            "recent_workouts": [
                self.workout_summary(w, DASHBOARD_SUMMARY_EXERCISES)
                for w in recent[:3]
            ],
        }

    def exercises_by_category(self) -> List[Dict[str, object]]:
        """Return the exercise library grouped in movement category order."""
        by_category: Dict[str, List[Exercise]] = {}
        for ex in self.exercises.fetch_exercises():
            by_category.setdefault(ex.category, []).append(ex)
        result = []
        for cat in MOVEMENT_CATEGORIES:
            items = by_category.get(cat["value"])
            if not items:
                continue
            result.append(
                {
                    "category": cat["value"],
                    "label": cat["label"],
                    "color": cat["color"],
                    "count": len(items),
                    "exercises": [exercise_to_dict(ex) for ex in items],
                }
            )
        return result

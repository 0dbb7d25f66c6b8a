from __future__ import annotations

import datetime
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence, Union

from constants import DAY_LOOKBACK, WEEK_LOOKBACK
from models import Exercise, ExerciseGroups, Workout, WorkoutSet

DateLike = Union[datetime.date, datetime.datetime]
BucketPredicate = Callable[[Sequence[Workout]], bool]


class StreakUnit(str, Enum):
    DAY = "day"
    WEEK = "week"


def min_workouts_predicate(count: int) -> BucketPredicate:
    """Return a predicate accepting buckets with at least ``count`` workouts."""
    if count < 1:
        raise ValueError("count must be at least 1")

    def predicate(bucket: Sequence[Workout]) -> bool:
        return len(bucket) >= count

    return predicate


class StreakPolicy:
    """Bucket unit plus qualifying rule for a streak."""

    def __init__(
        self,
        unit: StreakUnit | str,
        min_workouts: int = 1,
        max_lookback: int | None = None,
    ) -> None:
        self.unit = StreakUnit(unit)
        self.min_workouts = int(min_workouts)
        self.qualifying = min_workouts_predicate(self.min_workouts)
        if max_lookback is None:
            max_lookback = (
                DAY_LOOKBACK if self.unit is StreakUnit.DAY else WEEK_LOOKBACK
            )
        self.max_lookback = max_lookback

    def __repr__(self) -> str:
        return (
            f"StreakPolicy(unit={self.unit.value!r}, "
            f"min_workouts={self.min_workouts}, max_lookback={self.max_lookback})"
        )


DAILY_STREAK = StreakPolicy(StreakUnit.DAY, 1)
WEEKLY_STREAK = StreakPolicy(StreakUnit.WEEK, 3)


class WorkoutAggregator:
    """Derive dashboard statistics and groupings from a workout snapshot.

    Every method is a pure function of its arguments. Inputs are never
    mutated and nothing is cached between calls.
    """

    @staticmethod
    def _as_datetime(value: DateLike) -> datetime.datetime:
        """Return ``value`` as a naive local datetime; dates map to midnight."""
        if isinstance(value, datetime.datetime):
            if value.tzinfo is not None:
                return value.astimezone().replace(tzinfo=None)
            return value
        return datetime.datetime.combine(value, datetime.time.min)

    @staticmethod
    def week_window_start(reference: DateLike) -> datetime.datetime:
        """Return midnight of the Sunday that starts ``reference``'s week."""
        if isinstance(reference, datetime.datetime):
            day = reference.date()
            tz = reference.tzinfo
        else:
            day = reference
            tz = None
        # weekday(): Monday=0 .. Sunday=6; shift so Sunday is day 0
        days_since_sunday = (day.weekday() + 1) % 7
        start = day - datetime.timedelta(days=days_since_sunday)
        return datetime.datetime.combine(start, datetime.time.min, tzinfo=tz)

    @classmethod
    def count_workouts_in_window(
        cls,
        workouts: Iterable[Workout],
        window_start: DateLike,
        window_end_exclusive: Optional[DateLike] = None,
    ) -> int:
        """Count workouts dated in ``[window_start, window_end_exclusive)``."""
        start = cls._as_datetime(window_start)
        end = (
            cls._as_datetime(window_end_exclusive)
            if window_end_exclusive is not None
            else None
        )
        count = 0
        for w in workouts:
            when = cls._as_datetime(w.date)
            if when < start:
                continue
            if end is not None and when >= end:
                continue
            count += 1
        return count

    @classmethod
    def bucket_key(cls, value: DateLike, unit: StreakUnit | str) -> datetime.date:
        """Return the calendar day or Sunday week start containing ``value``."""
        if isinstance(value, datetime.datetime):
            value = cls._as_datetime(value)
        if StreakUnit(unit) is StreakUnit.WEEK:
            return cls.week_window_start(value).date()
        if isinstance(value, datetime.datetime):
            return value.date()
        return value

    @classmethod
    def bucket_workouts(
        cls, workouts: Iterable[Workout], unit: StreakUnit | str
    ) -> dict[datetime.date, list[Workout]]:
        buckets: dict[datetime.date, list[Workout]] = {}
        for w in workouts:
            buckets.setdefault(cls.bucket_key(w.date, unit), []).append(w)
        return buckets

    @classmethod
    def compute_streak(
        cls,
        workouts: Iterable[Workout],
        today: DateLike,
        qualifying: BucketPredicate,
        unit: StreakUnit | str,
        max_lookback: int | None = None,
    ) -> int:
        """Return the number of consecutive qualifying buckets up to ``today``.

        The walk has two phases. The bucket containing ``today`` is still in
        progress, so it adds one when it qualifies but never ends the walk.
        Every earlier bucket, walking backward one unit at a time, adds one
        when it qualifies and ends the walk on the first one that does not.
        At most ``max_lookback`` buckets are inspected, the current one
        included (30 for days, 52 for weeks by default).
        """
        unit = StreakUnit(unit)
        if max_lookback is None:
            max_lookback = DAY_LOOKBACK if unit is StreakUnit.DAY else WEEK_LOOKBACK
        if max_lookback < 1:
            raise ValueError("max_lookback must be at least 1")
        buckets = cls.bucket_workouts(workouts, unit)
        current = cls.bucket_key(today, unit)
        step = datetime.timedelta(days=1 if unit is StreakUnit.DAY else 7)

        streak = 0
        # phase 1: current bucket, a miss is forgiven
        if qualifying(buckets.get(current, [])):
            streak += 1

        # phase 2: strictly earlier buckets, first miss stops the walk
        for offset in range(1, max_lookback):
            key = current - step * offset
            if not qualifying(buckets.get(key, [])):
                break
            streak += 1
        return streak

    @classmethod
    def streak_for_policy(
        cls, workouts: Iterable[Workout], today: DateLike, policy: StreakPolicy
    ) -> int:
        return cls.compute_streak(
            workouts, today, policy.qualifying, policy.unit, policy.max_lookback
        )

    @staticmethod
    def group_sets_by_exercise(sets: Iterable[WorkoutSet]) -> ExerciseGroups:
        """Group ``sets`` by exercise in first-seen order."""
        groups = ExerciseGroups()
        for s in sets:
            groups.append(s)
        return groups

    @staticmethod
    def compute_volume(sets: Iterable[WorkoutSet]) -> float:
        """Sum of reps times weight."""
        return sum((s.reps * s.weight for s in sets), 0.0)

    @staticmethod
    def all_sets(workouts: Iterable[Workout]) -> list[WorkoutSet]:
        return [s for w in workouts for s in w.sets]

    @staticmethod
    def total_set_count(workouts: Iterable[Workout]) -> int:
        return sum(len(w.sets) for w in workouts)

    @classmethod
    def total_volume(cls, workouts: Iterable[Workout]) -> float:
        return cls.compute_volume(cls.all_sets(workouts))

    @classmethod
    def workouts_this_week(cls, workouts: Iterable[Workout], today: DateLike) -> int:
        return cls.count_workouts_in_window(workouts, cls.week_window_start(today))

    @classmethod
    def exercise_counts(
        cls, sets: Iterable[WorkoutSet], limit: int | None = None
    ) -> tuple[list[tuple[Exercise, int]], int]:
        """Return ``(exercise, set count)`` pairs and how many were cut off."""
        groups = cls.group_sets_by_exercise(sets)
        counts = [(g.exercise, g.set_count) for g in groups.values()]
        if limit is None or len(counts) <= limit:
            return counts, 0
        return counts[:limit], len(counts) - limit

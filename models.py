from __future__ import annotations

import datetime
from typing import Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from constants import CATEGORY_VALUES


class Exercise(BaseModel):
    """An entry of the exercise library."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = Field(..., min_length=1)
    category: str
    notes: Optional[str] = None

    @field_validator("category")
    @classmethod
    def _known_category(cls, value: str) -> str:
        if value not in CATEGORY_VALUES:
            raise ValueError(f"unknown movement category: {value}")
        return value


class WorkoutSet(BaseModel):
    """A single logged set with its resolved exercise."""

    model_config = ConfigDict(frozen=True)

    id: str
    workout_id: str
    exercise_id: str
    reps: int = Field(..., ge=1)
    weight: float = Field(..., ge=0, allow_inf_nan=False)
    rpe: Optional[float] = None
    exercise: Exercise

    @field_validator("rpe")
    @classmethod
    def _rpe_scale(cls, value: Optional[float]) -> Optional[float]:
        if value is None:
            return value
        if value < 1 or value > 10 or (value * 2) != int(value * 2):
            raise ValueError("rpe must be between 1 and 10 in 0.5 steps")
        return value

    @property
    def volume(self) -> float:
        return self.reps * self.weight


class Workout(BaseModel):
    """A training session and its sets, as read from storage."""

    model_config = ConfigDict(frozen=True)

    id: str
    date: datetime.datetime
    notes: Optional[str] = None
    sets: tuple[WorkoutSet, ...] = ()

    @property
    def day(self) -> datetime.date:
        return self.date.date()


class ExerciseGroup(BaseModel):
    """Sets of one exercise in the order they were logged."""

    exercise: Exercise
    sets: list[WorkoutSet] = Field(default_factory=list)

    @property
    def set_count(self) -> int:
        return len(self.sets)


class ExerciseGroups:
    """Insertion ordered mapping of exercise id to :class:`ExerciseGroup`.

    Order is kept in an explicit list next to a key index, so the display
    order is the order exercises were first seen.
    """

    def __init__(self) -> None:
        self._index: dict[str, int] = {}
        self._keys: list[str] = []
        self._groups: list[ExerciseGroup] = []

    def append(self, workout_set: WorkoutSet) -> None:
        key = workout_set.exercise_id
        pos = self._index.get(key)
        if pos is None:
            pos = len(self._groups)
            self._index[key] = pos
            self._keys.append(key)
            self._groups.append(ExerciseGroup(exercise=workout_set.exercise))
        self._groups[pos].sets.append(workout_set)

    def __getitem__(self, exercise_id: str) -> ExerciseGroup:
        return self._groups[self._index[exercise_id]]

    def __contains__(self, exercise_id: object) -> bool:
        return exercise_id in self._index

    def __len__(self) -> int:
        return len(self._groups)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def keys(self) -> list[str]:
        return list(self._keys)

    def values(self) -> list[ExerciseGroup]:
        return list(self._groups)

    def items(self) -> list[tuple[str, ExerciseGroup]]:
        return list(zip(self._keys, self._groups))

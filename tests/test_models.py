import os
import sys
import datetime
import unittest

from pydantic import ValidationError

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from constants import get_category_color, get_category_label
from models import Exercise, ExerciseGroups, Workout, WorkoutSet


class ModelTest(unittest.TestCase):
    def setUp(self) -> None:
        self.bench = Exercise(id="e1", name="Bench Press", category="upper_push")

    def _set(self, **kwargs) -> WorkoutSet:
        data = {
            "id": "s1",
            "workout_id": "w1",
            "exercise_id": "e1",
            "reps": 5,
            "weight": 100.0,
            "exercise": self.bench,
        }
        data.update(kwargs)
        return WorkoutSet(**data)

    def test_set_invariants(self) -> None:
        self.assertEqual(self._set().volume, 500.0)
        self.assertEqual(self._set(rpe=7.5).rpe, 7.5)
        with self.assertRaises(ValidationError):
            self._set(reps=0)
        with self.assertRaises(ValidationError):
            self._set(weight=-1)
        with self.assertRaises(ValidationError):
            self._set(rpe=7.3)
        with self.assertRaises(ValidationError):
            self._set(rpe=11)
        with self.assertRaises(ValidationError):
            self._set(weight=float("inf"))

    def test_unknown_category_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            Exercise(id="e2", name="Curl", category="arms")

    def test_records_are_frozen(self) -> None:
        workout = Workout(id="w1", date=datetime.datetime(2024, 5, 15, 8))
        with self.assertRaises(ValidationError):
            workout.notes = "changed"
        self.assertEqual(workout.day, datetime.date(2024, 5, 15))
        self.assertEqual(workout.sets, ())

    def test_exercise_groups_mapping(self) -> None:
        groups = ExerciseGroups()
        groups.append(self._set(id="s1"))
        groups.append(self._set(id="s2"))
        self.assertEqual(len(groups), 1)
        self.assertEqual(list(groups), ["e1"])
        self.assertEqual([s.id for s in groups["e1"].sets], ["s1", "s2"])

    def test_category_helpers(self) -> None:
        self.assertEqual(get_category_label("lower_hinge"), "Lower Hinge")
        self.assertEqual(get_category_label("mystery"), "mystery")
        self.assertEqual(get_category_color("core"), "rose")
        self.assertEqual(get_category_color("mystery"), "gray")


if __name__ == "__main__":
    unittest.main()

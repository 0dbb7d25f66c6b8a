import datetime
import logging

from config import DEFAULT_DB_PATH
from constants import MOVEMENT_CATEGORIES
from db import ExerciseRepository, WorkoutRepository

logger = logging.getLogger(__name__)

SAMPLE_EXERCISES = {
    "upper_push": "Bench Press",
    "upper_pull": "Barbell Row",
    "lower_push": "Back Squat",
    "lower_hinge": "Romanian Deadlift",
    "core": "Plank",
}


def seed(db_path: str = DEFAULT_DB_PATH) -> bool:
    """Insert a sample exercise library and workout; return False if not empty."""
    workouts = WorkoutRepository(db_path)
    exercises = ExerciseRepository(db_path)
    if workouts.count():
        logger.info("database already contains workouts")
        return False

    ids = {}
    for cat in MOVEMENT_CATEGORIES:
        ids[cat["value"]] = exercises.add(SAMPLE_EXERCISES[cat["value"]], cat["value"])

    workouts.create(
        datetime.datetime.now(),
        "Sample session",
        [
            {"exercise_id": ids["upper_push"], "reps": 5, "weight": 100.0, "rpe": 8},
            {"exercise_id": ids["upper_push"], "reps": 5, "weight": 105.0, "rpe": 9},
            {"exercise_id": ids["lower_push"], "reps": 5, "weight": 140.0, "rpe": 8.5},
            {"exercise_id": ids["upper_pull"], "reps": 8, "weight": 80.0},
        ],
    )
    logger.info("seed data inserted")
    return True


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    seed()

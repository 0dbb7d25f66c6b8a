import requests
from typing import Optional


class TrackerClient:
    """Simple REST client for the workout tracker API."""

    def __init__(self, base_url: str = "http://localhost:8000", session=None) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    def _get(self, path: str, **params):
        resp = self.session.get(f"{self.base_url}{path}", params=params)
        resp.raise_for_status()
        return resp.json()

    def add_exercise(self, name: str, category: str, notes: Optional[str] = None) -> str:
        resp = self.session.post(
            f"{self.base_url}/exercises",
            json={"name": name, "category": category, "notes": notes},
        )
        resp.raise_for_status()
        return resp.json()["id"]

    def list_exercises(self, category: Optional[str] = None):
        if category:
            return self._get("/exercises", category=category)
        return self._get("/exercises")

    def create_workout(
        self, sets: list[dict], date: Optional[str] = None, notes: Optional[str] = None
    ) -> str:
        body: dict = {"sets": sets, "notes": notes}
        if date is not None:
            body["date"] = date
        resp = self.session.post(f"{self.base_url}/workouts", json=body)
        resp.raise_for_status()
        return resp.json()["id"]

    def list_workouts(self, **params: str):
        return self._get("/workouts", **params)

    def get_workout(self, workout_id: str):
        return self._get(f"/workouts/{workout_id}")

    def add_set(
        self,
        workout_id: str,
        exercise_id: str,
        reps: int,
        weight: float,
        rpe: Optional[float] = None,
    ) -> str:
        resp = self.session.post(
            f"{self.base_url}/workouts/{workout_id}/sets",
            json={"exercise_id": exercise_id, "reps": reps, "weight": weight, "rpe": rpe},
        )
        resp.raise_for_status()
        return resp.json()["id"]

    def delete_workout(self, workout_id: str) -> None:
        resp = self.session.delete(f"{self.base_url}/workouts/{workout_id}")
        resp.raise_for_status()

    def dashboard(self):
        return self._get("/stats/dashboard")

    def streak(self, unit: Optional[str] = None, min_workouts: Optional[int] = None):
        params = {}
        if unit:
            params["unit"] = unit
        if min_workouts is not None:
            params["min_workouts"] = min_workouts
        return self._get("/stats/streak", **params)

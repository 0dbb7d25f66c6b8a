import os
import sys
import datetime
import unittest

from fastapi.testclient import TestClient

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from rest_api import TrackerAPI


def iso_days_ago(days: int, hour: int = 9) -> str:
    day = datetime.date.today() - datetime.timedelta(days=days)
    return datetime.datetime.combine(day, datetime.time(hour)).isoformat()


class APITestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_workout.db"
        self.yaml_path = "test_settings.yaml"
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        if os.path.exists(self.yaml_path):
            os.remove(self.yaml_path)
        self.api = TrackerAPI(db_path=self.db_path, yaml_path=self.yaml_path)
        self.client = TestClient(self.api.app)

    def tearDown(self) -> None:
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        if os.path.exists(self.yaml_path):
            os.remove(self.yaml_path)

    def _exercise(self, name: str, category: str) -> str:
        response = self.client.post(
            "/exercises", json={"name": name, "category": category}
        )
        self.assertEqual(response.status_code, 200)
        return response.json()["id"]

    def test_health_and_categories(self) -> None:
        self.assertEqual(self.client.get("/health").json()["status"], "ok")
        cats = self.client.get("/categories").json()
        self.assertEqual(
            [c["value"] for c in cats],
            ["upper_push", "upper_pull", "lower_push", "lower_hinge", "core"],
        )

    def test_exercise_crud(self) -> None:
        eid = self._exercise("Bench Press", "upper_push")
        response = self.client.get(f"/exercises/{eid}")
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["name"], "Bench Press")
        self.assertEqual(data["category_label"], "Upper Push")
        self.assertEqual(data["category_color"], "blue")

        response = self.client.put(f"/exercises/{eid}", json={"notes": "paused"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get(f"/exercises/{eid}").json()["notes"], "paused")

        self._exercise("Plank", "core")
        names = [e["name"] for e in self.client.get("/exercises").json()]
        self.assertEqual(names, ["Bench Press", "Plank"])
        core = self.client.get("/exercises", params={"category": "core"}).json()
        self.assertEqual([e["name"] for e in core], ["Plank"])
        self.assertEqual(
            self.client.get("/exercises/search", params={"query": "ben"}).json(),
            ["Bench Press"],
        )
        grouped = self.client.get("/exercises/by_category").json()
        self.assertEqual([g["category"] for g in grouped], ["upper_push", "core"])

        response = self.client.delete(f"/exercises/{eid}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get(f"/exercises/{eid}").status_code, 404)

    def test_exercise_errors(self) -> None:
        response = self.client.post(
            "/exercises", json={"name": "Curl", "category": "arms"}
        )
        self.assertEqual(response.status_code, 400)
        response = self.client.post("/exercises", json={"name": " ", "category": "core"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.client.get("/exercises/missing").status_code, 404)
        self.assertEqual(self.client.delete("/exercises/missing").status_code, 404)

    def test_workout_workflow(self) -> None:
        bench = self._exercise("Bench Press", "upper_push")
        row = self._exercise("Barbell Row", "upper_pull")
        response = self.client.post(
            "/workouts",
            json={
                "date": iso_days_ago(0),
                "notes": "push pull",
                "sets": [
                    {"exercise_id": bench, "reps": 5, "weight": 100, "rpe": 8},
                    {"exercise_id": row, "reps": 8, "weight": 70},
                    {"exercise_id": bench, "reps": 5, "weight": 102.5},
                ],
            },
        )
        self.assertEqual(response.status_code, 200)
        wid = response.json()["id"]

        detail = self.client.get(f"/workouts/{wid}").json()
        self.assertEqual(detail["total_sets"], 3)
        self.assertEqual(detail["exercise_count"], 2)
        self.assertEqual(detail["volume"], 500 + 560 + 512.5)
        self.assertEqual(
            [g["exercise"]["name"] for g in detail["groups"]],
            ["Bench Press", "Barbell Row"],
        )
        self.assertEqual(len(detail["groups"][0]["sets"]), 2)

        response = self.client.post(
            f"/workouts/{wid}/sets",
            json={"exercise_id": row, "reps": 10, "weight": 60},
        )
        self.assertEqual(response.status_code, 200)
        sid = response.json()["id"]
        self.assertEqual(self.client.get(f"/workouts/{wid}").json()["total_sets"], 4)
        self.assertEqual(self.client.delete(f"/sets/{sid}").status_code, 200)
        self.assertEqual(self.client.delete(f"/sets/{sid}").status_code, 404)

        response = self.client.put(f"/workouts/{wid}/note", params={"note": "done"})
        self.assertEqual(response.status_code, 200)

        listed = self.client.get("/workouts").json()
        self.assertEqual(len(listed), 1)
        self.assertEqual(listed[0]["notes"], "done")
        self.assertEqual(listed[0]["sets"], 3)
        self.assertEqual(
            [(e["name"], e["sets"]) for e in listed[0]["exercises"]],
            [("Bench Press", 2), ("Barbell Row", 1)],
        )

        csv_resp = self.client.get(f"/workouts/{wid}/export_csv")
        self.assertEqual(csv_resp.status_code, 200)
        self.assertTrue(csv_resp.text.startswith("Exercise,Category,Reps,Weight,RPE"))

        self.assertEqual(self.client.delete(f"/workouts/{wid}").status_code, 200)
        self.assertEqual(self.client.get(f"/workouts/{wid}").status_code, 404)
        self.assertEqual(self.api.sets.count(), 0)

    def test_workout_errors(self) -> None:
        bench = self._exercise("Bench Press", "upper_push")
        tomorrow = datetime.datetime.combine(
            datetime.date.today() + datetime.timedelta(days=1), datetime.time(9)
        )
        response = self.client.post("/workouts", json={"date": tomorrow.isoformat()})
        self.assertEqual(response.status_code, 400)
        response = self.client.post(
            "/workouts",
            json={"sets": [{"exercise_id": bench, "reps": 0, "weight": 100}]},
        )
        self.assertEqual(response.status_code, 400)
        response = self.client.post(
            "/workouts",
            json={"sets": [{"exercise_id": "missing", "reps": 5, "weight": 100}]},
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.api.workouts.count(), 0)
        self.assertEqual(self.client.get("/workouts/missing").status_code, 404)
        self.assertEqual(
            self.client.get("/workouts/missing/export_csv").status_code, 404
        )

    def test_non_finite_weight_rejected(self) -> None:
        bench = self._exercise("Bench Press", "upper_push")
        wid = self.client.post("/workouts").json()["id"]
        for token in ("Infinity", "NaN"):
            response = self.client.post(
                f"/workouts/{wid}/sets",
                content=f'{{"exercise_id": "{bench}", "reps": 5, "weight": {token}}}',
                headers={"Content-Type": "application/json"},
            )
            self.assertEqual(response.status_code, 400)
        self.assertEqual(self.client.get(f"/workouts/{wid}").json()["total_sets"], 0)

    def test_offset_dates_checked_in_local_time(self) -> None:
        now_utc = datetime.datetime.now(datetime.timezone.utc)
        plus_14 = datetime.timezone(datetime.timedelta(hours=14))
        minus_12 = datetime.timezone(datetime.timedelta(hours=-12))
        past = (now_utc - datetime.timedelta(hours=1)).astimezone(plus_14)
        response = self.client.post("/workouts", json={"date": past.isoformat()})
        self.assertEqual(response.status_code, 200)
        stored = self.api.workouts.fetch_workout(response.json()["id"]).date
        self.assertIsNone(stored.tzinfo)
        self.assertLessEqual(stored, datetime.datetime.now())

        future = (now_utc + datetime.timedelta(days=2)).astimezone(minus_12)
        response = self.client.post("/workouts", json={"date": future.isoformat()})
        self.assertEqual(response.status_code, 400)

    def test_empty_workout_defaults_to_now(self) -> None:
        response = self.client.post("/workouts")
        self.assertEqual(response.status_code, 200)
        listed = self.client.get("/workouts").json()
        self.assertEqual(listed[0]["sets"], 0)
        self.assertTrue(listed[0]["date"].startswith(datetime.date.today().isoformat()))

    def test_dashboard_and_stats(self) -> None:
        bench = self._exercise("Bench Press", "upper_push")
        for days in (0, 1):
            self.client.post(
                "/workouts",
                json={
                    "date": iso_days_ago(days),
                    "sets": [{"exercise_id": bench, "reps": 5, "weight": 100}],
                },
            )
        data = self.client.get("/stats/dashboard").json()
        self.assertEqual(data["streak"], 2)
        self.assertEqual(data["streak_unit"], "day")
        self.assertGreaterEqual(data["workouts_this_week"], 1)
        self.assertEqual(data["total_sets"], 2)
        self.assertEqual(data["exercise_count"], 1)
        self.assertEqual(len(data["recent_workouts"]), 2)

        streak = self.client.get("/stats/streak", params={"unit": "day"}).json()
        self.assertEqual(streak["streak"], 2)
        response = self.client.get("/stats/streak", params={"unit": "month"})
        self.assertEqual(response.status_code, 400)
        response = self.client.get("/stats/streak", params={"min_workouts": 0})
        self.assertEqual(response.status_code, 400)

        volume = self.client.get("/stats/volume").json()
        self.assertEqual(volume["volume"], 1000.0)
        self.assertEqual(volume["workouts"], 2)
        week = self.client.get("/stats/week").json()
        self.assertGreaterEqual(week["workouts"], 1)

    def test_settings(self) -> None:
        data = self.client.get("/settings").json()
        self.assertEqual(data["streak_unit"], "day")
        response = self.client.post(
            "/settings", json={"streak_unit": "week", "streak_min_workouts": 3}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get("/stats/dashboard").json()["streak_unit"], "week")
        response = self.client.post("/settings", json={"weight_unit": "stone"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.client.get("/settings").json()["weight_unit"], "kg")

    def test_snapshot_endpoint(self) -> None:
        bench = self._exercise("Bench Press", "upper_push")
        self.client.post(
            "/workouts",
            json={
                "date": iso_days_ago(1),
                "sets": [{"exercise_id": bench, "reps": 5, "weight": 100}],
            },
        )
        newest = self.client.post("/workouts", json={"date": iso_days_ago(0)}).json()["id"]
        data = self.client.get("/workouts/snapshot").json()
        self.assertEqual(len(data), 2)
        self.assertEqual(data[0]["id"], newest)
        self.assertEqual(data[1]["sets"][0]["exercise"]["name"], "Bench Press")
        self.assertEqual(len(self.client.get("/workouts/snapshot", params={"limit": 1}).json()), 1)


if __name__ == "__main__":
    unittest.main()

import datetime
import logging
from typing import List, Optional

from fastapi import APIRouter, Body, FastAPI, HTTPException, Response
from pydantic import BaseModel, Field

from config import APP_VERSION, DEFAULT_DB_PATH, DEFAULT_YAML_PATH
from constants import MOVEMENT_CATEGORIES
from db import (
    AsyncWorkoutRepository,
    ExerciseRepository,
    SetRepository,
    SettingsRepository,
    WorkoutRepository,
)
from stats_service import StatisticsService, exercise_to_dict

logger = logging.getLogger(__name__)


class ExerciseCreate(BaseModel):
    name: str
    category: str
    notes: Optional[str] = None


class ExerciseUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    notes: Optional[str] = None


class SetCreate(BaseModel):
    exercise_id: str
    reps: int
    weight: float
    rpe: Optional[float] = None


class WorkoutCreate(BaseModel):
    date: Optional[datetime.datetime] = None
    notes: Optional[str] = None
    sets: List[SetCreate] = Field(default_factory=list)


def _http_error(e: ValueError) -> HTTPException:
    msg = str(e)
    status = 404 if "not found" in msg else 400
    return HTTPException(status_code=status, detail=msg)


class TrackerAPI:
    """Provides REST endpoints for workout logging and dashboard statistics."""

    def __init__(
        self,
        db_path: str = DEFAULT_DB_PATH,
        yaml_path: str = DEFAULT_YAML_PATH,
    ) -> None:
        self.db_path = db_path
        self.settings = SettingsRepository(db_path, yaml_path)
        self.workouts = WorkoutRepository(db_path)
        self.async_workouts = AsyncWorkoutRepository(db_path)
        self.exercises = ExerciseRepository(db_path)
        self.sets = SetRepository(db_path)
        self.statistics = StatisticsService(
            self.workouts,
            self.exercises,
            self.sets,
            self.settings,
        )
        self.app = FastAPI(
            title="Workout Tracker API",
            description="REST API for workout logging and dashboard statistics",
            version=APP_VERSION,
        )
        self._setup_routes()

    def _setup_routes(self) -> None:
        exercises_router = APIRouter(prefix="/exercises", tags=["Exercises"])
        stats_router = APIRouter(prefix="/stats", tags=["Statistics"])

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            """Return API and database connection status."""
            try:
                self.workouts.count()
                return {"status": "ok", "version": APP_VERSION}
            except Exception as e:  # pragma: no cover - connectivity failure
                logger.exception("health check failed")
                raise HTTPException(status_code=500, detail=str(e))

        @self.app.get("/categories")
        def list_categories():
            return [dict(c) for c in MOVEMENT_CATEGORIES]

        @exercises_router.get("")
        def list_exercises(category: str = None):
            return [
                exercise_to_dict(ex) for ex in self.exercises.fetch_exercises(category)
            ]

        @exercises_router.get("/by_category")
        def exercises_by_category():
            return self.statistics.exercises_by_category()

        @exercises_router.get("/search")
        def search_exercises(query: str, limit: int = 5):
            return self.exercises.search(query, limit)

        @exercises_router.get("/{exercise_id}")
        def get_exercise(exercise_id: str):
            try:
                return exercise_to_dict(self.exercises.fetch_exercise(exercise_id))
            except ValueError as e:
                raise _http_error(e)

        @exercises_router.post("")
        def create_exercise(payload: ExerciseCreate):
            try:
                eid = self.exercises.add(payload.name, payload.category, payload.notes)
            except ValueError as e:
                raise _http_error(e)
            return {"id": eid}

        @exercises_router.put("/{exercise_id}")
        def update_exercise(exercise_id: str, payload: ExerciseUpdate):
            try:
                self.exercises.update(
                    exercise_id, payload.name, payload.category, payload.notes
                )
            except ValueError as e:
                raise _http_error(e)
            return {"status": "updated"}

        @exercises_router.delete("/{exercise_id}")
        def delete_exercise(exercise_id: str):
            try:
                self.exercises.delete(exercise_id)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "deleted"}

        @self.app.post(
            "/workouts",
            summary="Create workout",
            description="Create a workout session together with its sets.",
        )
        def create_workout(payload: Optional[WorkoutCreate] = None):
            payload = payload or WorkoutCreate()
            when = payload.date or datetime.datetime.now()
            if when.tzinfo is not None:
                when = when.astimezone().replace(tzinfo=None)
            if when.date() > datetime.date.today():
                raise HTTPException(
                    status_code=400, detail="date cannot be in the future"
                )
            try:
                wid = self.workouts.create(
                    when,
                    payload.notes,
                    [s.model_dump() for s in payload.sets],
                )
            except ValueError as e:
                raise _http_error(e)
            return {"id": wid}

        @self.app.get(
            "/workouts",
            summary="List workouts",
            description="Workouts newest first with set count, volume and exercises.",
        )
        def list_workouts(
            start_date: str = None,
            end_date: str = None,
            limit: int | None = None,
        ):
            try:
                return self.statistics.workout_list(start_date, end_date, limit)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @self.app.get("/workouts/snapshot")
        async def workout_snapshot(limit: int | None = None):
            snapshot = await self.async_workouts.fetch_snapshot(limit=limit)
            return [w.model_dump(mode="json") for w in snapshot]

        @self.app.get("/workouts/{workout_id}")
        def get_workout(workout_id: str):
            try:
                return self.statistics.workout_detail(workout_id)
            except ValueError as e:
                raise _http_error(e)

        @self.app.put("/workouts/{workout_id}/note")
        def update_workout_note(workout_id: str, note: str = None):
            try:
                self.workouts.set_note(workout_id, note)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "updated"}

        @self.app.delete("/workouts/{workout_id}")
        def delete_workout(workout_id: str):
            try:
                self.workouts.delete(workout_id)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "deleted"}

        @self.app.get("/workouts/{workout_id}/export_csv")
        def export_workout_csv(workout_id: str):
            try:
                self.workouts.fetch_detail(workout_id)
            except ValueError as e:
                raise _http_error(e)
            data = self.sets.export_workout_csv(workout_id)
            return Response(
                content=data,
                media_type="text/csv",
                headers={
                    "Content-Disposition": f"attachment; filename=workout_{workout_id}.csv"
                },
            )

        @self.app.post("/workouts/{workout_id}/sets")
        def add_set(workout_id: str, payload: SetCreate):
            try:
                sid = self.sets.add(
                    workout_id,
                    payload.exercise_id,
                    payload.reps,
                    payload.weight,
                    payload.rpe,
                )
            except ValueError as e:
                raise _http_error(e)
            return {"id": sid}

        @self.app.delete("/sets/{set_id}")
        def delete_set(set_id: str):
            try:
                self.sets.remove(set_id)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "deleted"}

        @stats_router.get("/dashboard")
        def stats_dashboard():
            return self.statistics.dashboard()

        @stats_router.get("/streak")
        def stats_streak(unit: str = None, min_workouts: int | None = None):
            try:
                return self.statistics.streak(unit, min_workouts)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @stats_router.get("/volume")
        def stats_volume(start_date: str = None, end_date: str = None):
            try:
                return self.statistics.volume(start_date, end_date)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @stats_router.get("/week")
        def stats_week():
            return self.statistics.week_summary()

        @self.app.get("/settings")
        def get_settings():
            return self.settings.all_settings()

        @self.app.post("/settings")
        def update_settings(data: dict = Body(...)):
            try:
                self.settings.update(data)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"status": "updated"}

        self.app.include_router(exercises_router)
        self.app.include_router(stats_router)


api = TrackerAPI()
app = api.app

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app)

import sqlite3
import aiosqlite
import csv
import io
import json
import logging
import math
import datetime
import uuid
from contextlib import contextmanager, asynccontextmanager
from typing import Iterable, List, Optional, Tuple, Union

from config import YamlConfig, DEFAULT_DB_PATH, DEFAULT_YAML_PATH
from constants import is_valid_category
from models import Exercise, Workout, WorkoutSet
from settings_schema import DEFAULT_SETTINGS, validate_settings

logger = logging.getLogger(__name__)

DateInput = Union[str, datetime.date, datetime.datetime]

_SET_SELECT = (
    "SELECT s.id, s.workout_id, s.exercise_id, s.reps, s.weight, s.rpe, "
    "e.name, e.category, e.notes "
    "FROM sets s JOIN exercises e ON s.exercise_id = e.id"
)


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> str:
    return datetime.datetime.now().isoformat(timespec="seconds")


def parse_timestamp(value: DateInput) -> datetime.datetime:
    """Return ``value`` as a datetime; plain dates map to midnight."""
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time.min)
    return datetime.datetime.fromisoformat(value)


def _is_plain_date(value: DateInput) -> bool:
    if isinstance(value, datetime.datetime):
        return False
    if isinstance(value, datetime.date):
        return True
    return len(value) == 10


def date_filter(
    start_date: Optional[DateInput] = None,
    end_date: Optional[DateInput] = None,
    column: str = "date",
) -> Tuple[str, list]:
    """Return a WHERE clause selecting ``start_date <= column < end``.

    A plain calendar date as ``end_date`` includes that whole day.
    """
    clauses: list[str] = []
    params: list = []
    if start_date:
        clauses.append(f"{column} >= ?")
        params.append(parse_timestamp(start_date).isoformat(timespec="seconds"))
    if end_date:
        end = parse_timestamp(end_date)
        if _is_plain_date(end_date):
            end += datetime.timedelta(days=1)
        clauses.append(f"{column} < ?")
        params.append(end.isoformat(timespec="seconds"))
    if not clauses:
        return "", params
    return " WHERE " + " AND ".join(clauses), params


def check_set_values(reps: int, weight: float, rpe: Optional[float] = None) -> None:
    if int(reps) != reps or reps < 1:
        raise ValueError("reps must be a positive integer")
    if not math.isfinite(weight) or weight < 0:
        raise ValueError("weight must be a finite non-negative number")
    if rpe is not None and (
        not math.isfinite(rpe) or rpe < 1 or rpe > 10 or rpe * 2 != int(rpe * 2)
    ):
        raise ValueError("rpe must be between 1 and 10 in 0.5 steps")


def build_snapshot(workout_rows: Iterable[Tuple], set_rows: Iterable[Tuple]) -> List[Workout]:
    """Assemble workouts with their sets from raw ``workouts`` and ``sets`` rows."""
    by_workout: dict[str, list[WorkoutSet]] = {}
    exercises: dict[str, Exercise] = {}
    for sid, wid, eid, reps, weight, rpe, name, category, notes in set_rows:
        exercise = exercises.get(eid)
        if exercise is None:
            exercise = Exercise(id=eid, name=name, category=category, notes=notes)
            exercises[eid] = exercise
        by_workout.setdefault(wid, []).append(
            WorkoutSet(
                id=sid,
                workout_id=wid,
                exercise_id=eid,
                reps=int(reps),
                weight=float(weight),
                rpe=float(rpe) if rpe is not None else None,
                exercise=exercise,
            )
        )
    return [
        Workout(
            id=wid,
            date=datetime.datetime.fromisoformat(date),
            notes=notes,
            sets=tuple(by_workout.get(wid, [])),
        )
        for wid, date, notes in workout_rows
    ]


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "exercises": (
            """CREATE TABLE exercises (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    category TEXT NOT NULL,
                    notes TEXT,
                    created_at TEXT NOT NULL
                );""",
            ["id", "name", "category", "notes", "created_at"],
        ),
        "workouts": (
            """CREATE TABLE workouts (
                    id TEXT PRIMARY KEY,
                    date TEXT NOT NULL,
                    notes TEXT,
                    created_at TEXT NOT NULL
                );""",
            ["id", "date", "notes", "created_at"],
        ),
        "sets": (
            """CREATE TABLE sets (
                    id TEXT PRIMARY KEY,
                    workout_id TEXT NOT NULL,
                    exercise_id TEXT NOT NULL,
                    reps INTEGER NOT NULL,
                    weight REAL NOT NULL,
                    rpe REAL,
                    position INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE CASCADE,
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id) ON DELETE RESTRICT
                );""",
            ["id", "workout_id", "exercise_id", "reps", "weight", "rpe", "position"],
        ),
        "settings": (
            """CREATE TABLE settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
    }

    def __init__(self, db_path: str = DEFAULT_DB_PATH) -> None:
        self._db_path = db_path
        self._ensure_schema()
        self._init_settings()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        connection.execute("PRAGMA foreign_keys=on;")
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            conn.execute("PRAGMA foreign_keys=off;")
            # keep REFERENCES pointing at the rebuilt table, not the *_old copy
            conn.execute("PRAGMA legacy_alter_table=on;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            conn.execute("PRAGMA legacy_alter_table=off;")
            conn.execute("PRAGMA foreign_keys=on;")

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        logger.info("migrating table %s: %s -> %s", table, existing_cols, columns)
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col == "position":
                        return "0"
                    if col == "created_at":
                        return f"'{_now()}'"
                    return "NULL"

                defaults = ", ".join(default_val(c) for c in missing)
                conn.execute(
                    f"INSERT INTO {table} ({cols}, {', '.join(missing)}) SELECT {cols}, {defaults} FROM {table}_old;"
                )
            else:
                conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
        conn.execute(f"DROP TABLE {table}_old;")

    def _init_settings(self) -> None:
        with self._connection() as conn:
            for key, value in DEFAULT_SETTINGS.items():
                conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?);",
                    (key, value),
                )


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.rowcount

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()

    def _count(self, table: str) -> int:
        rows = self.fetch_all(f"SELECT COUNT(*) FROM {table};")
        return int(rows[0][0])


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    @asynccontextmanager
    async def _async_connection(self):
        conn = await aiosqlite.connect(self._db_path)
        try:
            await conn.execute("PRAGMA foreign_keys=on;")
            yield conn
            await conn.commit()
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous variant of BaseRepository using aiosqlite."""

    async def execute(self, query: str, params: Tuple = ()) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            return cursor.rowcount

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return list(rows)


class AsyncWorkoutRepository(AsyncBaseRepository):
    """Async read access to workout snapshots."""

    async def fetch_snapshot(
        self,
        start_date: Optional[DateInput] = None,
        end_date: Optional[DateInput] = None,
        limit: int | None = None,
    ) -> List[Workout]:
        where, params = date_filter(start_date, end_date)
        query = f"SELECT id, date, notes FROM workouts{where} ORDER BY date DESC, rowid DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        async with self._async_connection() as conn:
            cursor = await conn.execute(query + ";", tuple(params))
            workout_rows = await cursor.fetchall()
            cursor = await conn.execute(
                f"{_SET_SELECT} WHERE s.workout_id IN (SELECT id FROM ({query})) "
                "ORDER BY s.position, s.rowid;",
                tuple(params),
            )
            set_rows = await cursor.fetchall()
        return build_snapshot(workout_rows, set_rows)

    async def count(self) -> int:
        rows = await self.fetch_all("SELECT COUNT(*) FROM workouts;")
        return int(rows[0][0])

    async def delete(self, workout_id: str) -> None:
        deleted = await self.execute("DELETE FROM workouts WHERE id = ?;", (workout_id,))
        if not deleted:
            raise ValueError("workout not found")


class ExerciseRepository(BaseRepository):
    """Repository for the exercise library."""

    @staticmethod
    def _check(name: str, category: str) -> str:
        name = (name or "").strip()
        if not name:
            raise ValueError("name is required")
        if not is_valid_category(category):
            raise ValueError(f"unknown movement category: {category}")
        return name

    def add(self, name: str, category: str, notes: Optional[str] = None) -> str:
        name = self._check(name, category)
        exercise_id = _new_id()
        self.execute(
            "INSERT INTO exercises (id, name, category, notes, created_at) VALUES (?, ?, ?, ?, ?);",
            (exercise_id, name, category, notes or None, _now()),
        )
        logger.info("exercise %s created (%s)", exercise_id, name)
        return exercise_id

    def fetch_all_exercises(
        self, category: Optional[str] = None
    ) -> List[Tuple[str, str, str, Optional[str]]]:
        query = "SELECT id, name, category, notes FROM exercises"
        params: tuple = ()
        if category:
            query += " WHERE category = ?"
            params = (category,)
        query += " ORDER BY name COLLATE NOCASE, rowid;"
        return self.fetch_all(query, params)

    def fetch_detail(self, exercise_id: str) -> Tuple[str, str, str, Optional[str]]:
        rows = self.fetch_all(
            "SELECT id, name, category, notes FROM exercises WHERE id = ?;",
            (exercise_id,),
        )
        if not rows:
            raise ValueError("exercise not found")
        return rows[0]

    def fetch_exercise(self, exercise_id: str) -> Exercise:
        eid, name, category, notes = self.fetch_detail(exercise_id)
        return Exercise(id=eid, name=name, category=category, notes=notes)

    def fetch_exercises(self, category: Optional[str] = None) -> List[Exercise]:
        return [
            Exercise(id=eid, name=name, category=cat, notes=notes)
            for eid, name, cat, notes in self.fetch_all_exercises(category)
        ]

    def search(self, query: str, limit: int = 5) -> List[str]:
        """Return exercise names containing ``query`` for autocompletion."""
        like = f"%{query.lower()}%"
        rows = self.fetch_all(
            "SELECT name FROM exercises WHERE lower(name) LIKE ? ORDER BY name COLLATE NOCASE LIMIT ?;",
            (like, limit),
        )
        return [r[0] for r in rows]

    def update(
        self,
        exercise_id: str,
        name: Optional[str] = None,
        category: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> None:
        _eid, cur_name, cur_category, cur_notes = self.fetch_detail(exercise_id)
        new_name = self._check(
            cur_name if name is None else name,
            cur_category if category is None else category,
        )
        self.execute(
            "UPDATE exercises SET name = ?, category = ?, notes = ? WHERE id = ?;",
            (
                new_name,
                cur_category if category is None else category,
                cur_notes if notes is None else (notes or None),
                exercise_id,
            ),
        )

    def delete(self, exercise_id: str) -> None:
        self.fetch_detail(exercise_id)
        rows = self.fetch_all(
            "SELECT COUNT(*) FROM sets WHERE exercise_id = ?;", (exercise_id,)
        )
        if int(rows[0][0]) > 0:
            raise ValueError("exercise is referenced by logged sets")
        self.execute("DELETE FROM exercises WHERE id = ?;", (exercise_id,))
        logger.info("exercise %s deleted", exercise_id)

    def count(self) -> int:
        return self._count("exercises")


class WorkoutRepository(BaseRepository):
    """Repository for workout table operations."""

    def create(
        self,
        date: Optional[DateInput] = None,
        notes: Optional[str] = None,
        sets: Iterable[dict] = (),
    ) -> str:
        """Insert a workout together with its sets in one transaction."""
        entries = list(sets)
        for entry in entries:
            check_set_values(entry["reps"], entry["weight"], entry.get("rpe"))
        when = parse_timestamp(date) if date is not None else datetime.datetime.now()
        if when.tzinfo is not None:
            # stored as naive local time so calendar buckets match "today"
            when = when.astimezone().replace(tzinfo=None)
        workout_id = _new_id()
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO workouts (id, date, notes, created_at) VALUES (?, ?, ?, ?);",
                (workout_id, when.isoformat(timespec="seconds"), notes or None, _now()),
            )
            for position, entry in enumerate(entries, start=1):
                found = conn.execute(
                    "SELECT 1 FROM exercises WHERE id = ?;", (entry["exercise_id"],)
                ).fetchone()
                if found is None:
                    raise ValueError("exercise not found")
                conn.execute(
                    "INSERT INTO sets (id, workout_id, exercise_id, reps, weight, rpe, position) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?);",
                    (
                        _new_id(),
                        workout_id,
                        entry["exercise_id"],
                        int(entry["reps"]),
                        float(entry["weight"]),
                        entry.get("rpe"),
                        position,
                    ),
                )
        logger.info("workout %s created with %d sets", workout_id, len(entries))
        return workout_id

    def fetch_all_workouts(
        self,
        start_date: Optional[DateInput] = None,
        end_date: Optional[DateInput] = None,
        descending: bool = True,
        limit: int | None = None,
        offset: int | None = None,
    ) -> List[Tuple[str, str, Optional[str]]]:
        where, params = date_filter(start_date, end_date)
        order = "DESC" if descending else "ASC"
        query = f"SELECT id, date, notes FROM workouts{where} ORDER BY date {order}, rowid {order}"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        if offset is not None:
            if limit is None:
                query += " LIMIT -1"
            query += " OFFSET ?"
            params.append(offset)
        query += ";"
        return self.fetch_all(query, tuple(params))

    def fetch_snapshot(
        self,
        start_date: Optional[DateInput] = None,
        end_date: Optional[DateInput] = None,
        limit: int | None = None,
    ) -> List[Workout]:
        """Return workouts newest first with sets and exercises resolved."""
        where, params = date_filter(start_date, end_date)
        query = f"SELECT id, date, notes FROM workouts{where} ORDER BY date DESC, rowid DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        with self._connection() as conn:
            workout_rows = conn.execute(query + ";", tuple(params)).fetchall()
            set_rows = conn.execute(
                f"{_SET_SELECT} WHERE s.workout_id IN (SELECT id FROM ({query})) "
                "ORDER BY s.position, s.rowid;",
                tuple(params),
            ).fetchall()
        return build_snapshot(workout_rows, set_rows)

    def fetch_detail(self, workout_id: str) -> Tuple[str, str, Optional[str]]:
        rows = self.fetch_all(
            "SELECT id, date, notes FROM workouts WHERE id = ?;",
            (workout_id,),
        )
        if not rows:
            raise ValueError("workout not found")
        return rows[0]

    def fetch_workout(self, workout_id: str) -> Workout:
        row = self.fetch_detail(workout_id)
        set_rows = self.fetch_all(
            f"{_SET_SELECT} WHERE s.workout_id = ? ORDER BY s.position, s.rowid;",
            (workout_id,),
        )
        return build_snapshot([row], set_rows)[0]

    def set_note(self, workout_id: str, note: str | None) -> None:
        self.fetch_detail(workout_id)
        self.execute(
            "UPDATE workouts SET notes = ? WHERE id = ?;",
            (note or None, workout_id),
        )

    def delete(self, workout_id: str) -> None:
        self.fetch_detail(workout_id)
        self.execute("DELETE FROM workouts WHERE id = ?;", (workout_id,))
        logger.info("workout %s deleted", workout_id)

    def count(self) -> int:
        return self._count("workouts")


class SetRepository(BaseRepository):
    """Repository for sets table operations."""

    def add(
        self,
        workout_id: str,
        exercise_id: str,
        reps: int,
        weight: float,
        rpe: Optional[float] = None,
    ) -> str:
        check_set_values(reps, weight, rpe)
        if not self.fetch_all("SELECT 1 FROM workouts WHERE id = ?;", (workout_id,)):
            raise ValueError("workout not found")
        if not self.fetch_all("SELECT 1 FROM exercises WHERE id = ?;", (exercise_id,)):
            raise ValueError("exercise not found")
        rows = self.fetch_all(
            "SELECT COALESCE(MAX(position), 0) + 1 FROM sets WHERE workout_id = ?;",
            (workout_id,),
        )
        position = int(rows[0][0]) if rows else 1
        set_id = _new_id()
        self.execute(
            "INSERT INTO sets (id, workout_id, exercise_id, reps, weight, rpe, position) "
            "VALUES (?, ?, ?, ?, ?, ?, ?);",
            (set_id, workout_id, exercise_id, int(reps), float(weight), rpe, position),
        )
        return set_id

    def remove(self, set_id: str) -> None:
        if not self.execute("DELETE FROM sets WHERE id = ?;", (set_id,)):
            raise ValueError("set not found")

    def fetch_for_workout(
        self, workout_id: str
    ) -> List[Tuple[str, str, str, int, float, Optional[float], str, str, Optional[str]]]:
        return self.fetch_all(
            f"{_SET_SELECT} WHERE s.workout_id = ? ORDER BY s.position, s.rowid;",
            (workout_id,),
        )

    def count(self) -> int:
        return self._count("sets")

    def export_workout_csv(self, workout_id: str) -> str:
        rows = self.fetch_for_workout(workout_id)
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(["Exercise", "Category", "Reps", "Weight", "RPE"])
        for _sid, _wid, _eid, reps, weight, rpe, name, category, _notes in rows:
            writer.writerow([name, category, reps, weight, "" if rpe is None else rpe])
        return output.getvalue()

    def export_workout_json(self, workout_id: str) -> str:
        rows = self.fetch_for_workout(workout_id)
        data = [
            {
                "exercise": name,
                "category": category,
                "reps": reps,
                "weight": weight,
                "rpe": rpe,
            }
            for _sid, _wid, _eid, reps, weight, rpe, name, category, _notes in rows
        ]
        return json.dumps(data)


class SettingsRepository(BaseRepository):
    """Repository for general application settings synchronized with YAML."""

    _INT_KEYS = {"streak_min_workouts", "recent_workouts_limit"}

    def __init__(
        self, db_path: str = DEFAULT_DB_PATH, yaml_path: str = DEFAULT_YAML_PATH
    ) -> None:
        super().__init__(db_path)
        self._yaml = YamlConfig(yaml_path)
        self._sync_from_yaml()
        self._sync_to_yaml()

    def _raw_all_settings(self) -> dict:
        rows = self.fetch_all("SELECT key, value FROM settings ORDER BY key;")
        result: dict[str, int | float | str] = {}
        for k, v in rows:
            if k in self._INT_KEYS:
                result[k] = int(float(v))
                continue
            result[k] = v
        return result

    def _sync_from_yaml(self) -> None:
        data = self._yaml.load()
        if not data:
            return
        validate_settings(data)
        with self._connection() as conn:
            for key, value in data.items():
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                    (key, str(value)),
                )

    def _sync_to_yaml(self) -> None:
        self._yaml.save(self._raw_all_settings())

    def get_text(self, key: str, default: str) -> str:
        self._sync_from_yaml()
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return rows[0][0] if rows else default

    def get_int(self, key: str, default: int) -> int:
        try:
            return int(float(self.get_text(key, str(default))))
        except ValueError:
            return default

    def all_settings(self) -> dict:
        self._sync_from_yaml()
        return self._raw_all_settings()

    def update(self, data: dict) -> None:
        """Validate and store several settings at once."""
        merged = {**self.all_settings(), **data}
        validate_settings(merged)
        with self._connection() as conn:
            for key, value in data.items():
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                    (key, str(value)),
                )
        self._sync_to_yaml()

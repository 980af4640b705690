import sqlite3
import datetime
import json
import re
import uuid
from contextlib import contextmanager
from typing import Iterable, List, Optional, Tuple

from errors import (
    NotFoundError,
    StoreUninitializedError,
    UnknownStoreError,
    ValidationError,
)
from schemas import Entry, Exercise, Plan, Session


class Database:
    """Provides SQLite connection management and schema provisioning.

    The schema is not created on construction. Callers provision it
    explicitly through :meth:`init_schema`; until then any query against a
    missing table raises :class:`StoreUninitializedError`.
    """

    _TABLE_DEFINITIONS = {
        "exercises": (
            """CREATE TABLE exercises (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL UNIQUE,
                    category TEXT NOT NULL,
                    muscle_group TEXT NOT NULL,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                );""",
            ["id", "name", "category", "muscle_group", "created_at", "updated_at"],
        ),
        "workout_plans": (
            """CREATE TABLE workout_plans (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    exercise_ids TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                );""",
            ["id", "name", "exercise_ids", "created_at", "updated_at"],
        ),
        "workout_sessions": (
            """CREATE TABLE workout_sessions (
                    id TEXT PRIMARY KEY,
                    date TEXT NOT NULL,
                    plan_id TEXT,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY(plan_id) REFERENCES workout_plans(id) ON DELETE SET NULL
                );""",
            ["id", "date", "plan_id", "created_at", "updated_at"],
        ),
        "session_entries": (
            """CREATE TABLE session_entries (
                    id TEXT PRIMARY KEY,
                    session_id TEXT NOT NULL,
                    exercise_id TEXT NOT NULL,
                    position INTEGER NOT NULL DEFAULT 0,
                    set_index INTEGER NOT NULL,
                    weight REAL NOT NULL,
                    reps INTEGER NOT NULL,
                    notes TEXT,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY(session_id) REFERENCES workout_sessions(id) ON DELETE CASCADE,
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "session_id",
                "exercise_id",
                "position",
                "set_index",
                "weight",
                "reps",
                "notes",
                "created_at",
            ],
        ),
    }

    _INDEXES = [
        "CREATE INDEX IF NOT EXISTS idx_exercises_category ON exercises(category);",
        "CREATE INDEX IF NOT EXISTS idx_exercises_muscle_group ON exercises(muscle_group);",
        "CREATE INDEX IF NOT EXISTS idx_sessions_date ON workout_sessions(date);",
        "CREATE INDEX IF NOT EXISTS idx_entries_session_id ON session_entries(session_id);",
        "CREATE INDEX IF NOT EXISTS idx_entries_exercise_id ON session_entries(exercise_id);",
    ]

    def __init__(self, db_path: str = "training.db") -> None:
        self._db_path = db_path

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        connection.execute("PRAGMA foreign_keys=on;")
        try:
            yield connection
            connection.commit()
        except sqlite3.OperationalError as e:
            if "no such table" in str(e):
                raise StoreUninitializedError("Database not initialized") from e
            raise UnknownStoreError(str(e)) from e
        except sqlite3.IntegrityError as e:
            raise _integrity_error(e) from e
        except sqlite3.Error as e:
            raise UnknownStoreError(str(e)) from e
        finally:
            connection.close()

    def init_schema(self) -> None:
        """Create missing tables and indexes. Safe to call repeatedly."""
        with self._connection() as conn:
            conn.execute("PRAGMA foreign_keys=off;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            for sql in self._INDEXES:
                conn.execute(sql)
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

        # Build, copy, drop, then rename: renaming the live table would rewrite
        # foreign keys in other tables to point at the temporary name.
        conn.execute(f"DROP TABLE IF EXISTS {table}_new;")
        conn.execute(sql.replace(f"CREATE TABLE {table} (", f"CREATE TABLE {table}_new (", 1))
        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            conn.execute(f"INSERT INTO {table}_new ({cols}) SELECT {cols} FROM {table};")
        conn.execute(f"DROP TABLE {table};")
        conn.execute(f"ALTER TABLE {table}_new RENAME TO {table};")

    def ping(self) -> None:
        with self._connection() as conn:
            conn.execute("SELECT 1;")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        """Run a write statement and return the affected row count."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.rowcount

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()

    @staticmethod
    def _now() -> str:
        return datetime.datetime.now(datetime.timezone.utc).isoformat()

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())


_UNIQUE_RE = re.compile(r"UNIQUE constraint failed: \w+\.(\w+)")


def _integrity_error(error: sqlite3.IntegrityError) -> ValidationError:
    text = str(error)
    match = _UNIQUE_RE.search(text)
    if match:
        field = match.group(1)
        return ValidationError(
            f"A record with this {field} already exists",
            [{"field": field, "message": "must be unique"}],
        )
    if "FOREIGN KEY" in text:
        return ValidationError("Referenced record does not exist")
    return ValidationError(text)


class ExerciseRepository(BaseRepository):
    """Repository for exercise table operations."""

    _COLUMNS = "id, name, category, muscle_group"

    @staticmethod
    def _record(row: Tuple) -> Exercise:
        eid, name, category, muscle_group = row
        return Exercise(id=eid, name=name, category=category, muscle_group=muscle_group)

    def add(self, name: str, category: str, muscle_group: str) -> Exercise:
        exercise_id = self._new_id()
        now = self._now()
        self.execute(
            "INSERT INTO exercises (id, name, category, muscle_group, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?);",
            (exercise_id, name, category, muscle_group, now, now),
        )
        return self.fetch_detail(exercise_id)

    def fetch_all_exercises(self) -> List[Exercise]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercises ORDER BY created_at DESC, rowid DESC;"
        )
        return [self._record(r) for r in rows]

    def fetch_detail(self, exercise_id: str) -> Exercise:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercises WHERE id = ?;", (exercise_id,)
        )
        if not rows:
            raise NotFoundError("Exercise not found")
        return self._record(rows[0])

    def update(
        self,
        exercise_id: str,
        name: Optional[str] = None,
        category: Optional[str] = None,
        muscle_group: Optional[str] = None,
    ) -> Exercise:
        existing = self.fetch_detail(exercise_id)
        self.execute(
            "UPDATE exercises SET name = ?, category = ?, muscle_group = ?, updated_at = ? "
            "WHERE id = ?;",
            (
                name if name is not None else existing.name,
                category if category is not None else existing.category,
                muscle_group if muscle_group is not None else existing.muscle_group,
                self._now(),
                exercise_id,
            ),
        )
        return self.fetch_detail(exercise_id)

    def delete(self, exercise_id: str) -> None:
        if not self.execute("DELETE FROM exercises WHERE id = ?;", (exercise_id,)):
            raise NotFoundError("Exercise not found")


class PlanRepository(BaseRepository):
    """Repository for workout plans.

    ``exercise_ids`` is stored as a JSON array so its order survives the
    round trip unchanged, duplicates included.
    """

    @staticmethod
    def _record(row: Tuple) -> Plan:
        pid, name, exercise_ids = row
        return Plan(id=pid, name=name, exercise_ids=tuple(json.loads(exercise_ids)))

    def add(self, name: str, exercise_ids: Iterable[str]) -> Plan:
        plan_id = self._new_id()
        now = self._now()
        self.execute(
            "INSERT INTO workout_plans (id, name, exercise_ids, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?);",
            (plan_id, name, json.dumps(list(exercise_ids)), now, now),
        )
        return self.fetch_detail(plan_id)

    def fetch_all_plans(self) -> List[Plan]:
        rows = self.fetch_all(
            "SELECT id, name, exercise_ids FROM workout_plans "
            "ORDER BY created_at DESC, rowid DESC;"
        )
        return [self._record(r) for r in rows]

    def fetch_detail(self, plan_id: str) -> Plan:
        rows = self.fetch_all(
            "SELECT id, name, exercise_ids FROM workout_plans WHERE id = ?;",
            (plan_id,),
        )
        if not rows:
            raise NotFoundError("Plan not found")
        return self._record(rows[0])

    def update(
        self,
        plan_id: str,
        name: Optional[str] = None,
        exercise_ids: Optional[Iterable[str]] = None,
    ) -> Plan:
        existing = self.fetch_detail(plan_id)
        ids = existing.exercise_ids if exercise_ids is None else exercise_ids
        self.execute(
            "UPDATE workout_plans SET name = ?, exercise_ids = ?, updated_at = ? WHERE id = ?;",
            (
                name if name is not None else existing.name,
                json.dumps(list(ids)),
                self._now(),
                plan_id,
            ),
        )
        return self.fetch_detail(plan_id)

    def delete(self, plan_id: str) -> None:
        if not self.execute("DELETE FROM workout_plans WHERE id = ?;", (plan_id,)):
            raise NotFoundError("Plan not found")


class SessionRepository(BaseRepository):
    """Repository for workout sessions and their entries."""

    def create(
        self,
        date: datetime.datetime,
        plan_id: Optional[str],
        entries: Iterable[Entry],
    ) -> Session:
        """Insert a session and all of its entries in one transaction."""
        session_id = self._new_id()
        now = self._now()
        stored: list[Entry] = []
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO workout_sessions (id, date, plan_id, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?);",
                (session_id, date.isoformat(), plan_id, now, now),
            )
            for position, entry in enumerate(entries):
                conn.execute(
                    "INSERT INTO session_entries (id, session_id, exercise_id, position, set_index, weight, reps, notes, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);",
                    (
                        self._new_id(),
                        session_id,
                        entry.exercise_id,
                        position,
                        entry.set_index,
                        float(entry.weight),
                        entry.reps,
                        entry.notes,
                        now,
                    ),
                )
                stored.append(entry)
        return Session(id=session_id, date=date, plan_id=plan_id, entries=tuple(stored))

    def fetch_all_sessions(self) -> List[Session]:
        """Return sessions newest first with entries ordered by set index."""
        sessions = self.fetch_all(
            "SELECT id, date, plan_id FROM workout_sessions ORDER BY date DESC, rowid DESC;"
        )
        rows = self.fetch_all(
            "SELECT session_id, exercise_id, set_index, weight, reps, notes "
            "FROM session_entries ORDER BY set_index, position;"
        )
        grouped: dict[str, list[Entry]] = {}
        for session_id, exercise_id, set_index, weight, reps, notes in rows:
            grouped.setdefault(session_id, []).append(
                Entry(
                    exercise_id=exercise_id,
                    set_index=set_index,
                    weight=weight,
                    reps=reps,
                    notes=notes,
                )
            )
        return [
            Session(
                id=sid,
                date=datetime.datetime.fromisoformat(date),
                plan_id=plan_id,
                entries=tuple(grouped.get(sid, [])),
            )
            for sid, date, plan_id in sessions
        ]

import sqlite3
import aiosqlite
import json
import logging
from contextlib import contextmanager, asynccontextmanager
from typing import Any, Iterable, List, Optional, Tuple

from errors import StorageError
from models import Action, ExerciseLog, Workout
from settings_schema import SettingsSchema, merge_settings

logger = logging.getLogger(__name__)


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "workouts": (
            """CREATE TABLE workouts (
                    id TEXT PRIMARY KEY,
                    template_id TEXT NOT NULL,
                    template_name TEXT NOT NULL,
                    started_at TEXT NOT NULL,
                    finished_at TEXT,
                    cardio TEXT,
                    notes TEXT NOT NULL DEFAULT ''
                );""",
            [
                "id",
                "template_id",
                "template_name",
                "started_at",
                "finished_at",
                "cardio",
                "notes",
            ],
        ),
        "exercise_logs": (
            """CREATE TABLE exercise_logs (
                    workout_id TEXT NOT NULL,
                    exercise_id TEXT NOT NULL,
                    finished_at TEXT,
                    notes TEXT NOT NULL DEFAULT '',
                    sets TEXT NOT NULL DEFAULT '[]',
                    PRIMARY KEY (workout_id, exercise_id)
                );""",
            ["workout_id", "exercise_id", "finished_at", "notes", "sets"],
        ),
        "actions": (
            """CREATE TABLE actions (
                    exercise_id TEXT PRIMARY KEY,
                    text TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );""",
            ["exercise_id", "text", "updated_at"],
        ),
        "settings": (
            """CREATE TABLE settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
    }

    _INDEXES = [
        "CREATE INDEX IF NOT EXISTS idx_exercise_logs_exercise ON exercise_logs (exercise_id);",
        "CREATE INDEX IF NOT EXISTS idx_exercise_logs_workout ON exercise_logs (workout_id);",
        "CREATE INDEX IF NOT EXISTS idx_workouts_started ON workouts (started_at);",
    ]

    def __init__(self, db_path: str = "workout_log.db", ensure_schema: bool = True) -> None:
        self._db_path = db_path
        if ensure_schema:
            self._ensure_schema()

    @property
    def db_path(self) -> str:
        return self._db_path

    @contextmanager
    def _connection(self):
        try:
            connection = sqlite3.connect(self._db_path)
        except sqlite3.Error as e:
            raise StorageError(f"cannot open {self._db_path}: {e}") from e
        try:
            yield connection
            connection.commit()
        except sqlite3.Error as e:
            connection.rollback()
            logger.error("storage failure on %s: %s", self._db_path, e)
            raise StorageError(str(e)) from e
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            for sql in self._INDEXES:
                conn.execute(sql)

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
        conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)
        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col in ("notes", "template_id", "template_name"):
                        return "''"
                    if col == "sets":
                        return "'[]'"
                    if col in ("started_at", "updated_at"):
                        return "'1970-01-01T00:00:00+00:00'"
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


class AsyncDatabase(Database):
    """Provides asynchronous connection management.

    Every connection is one transaction: committed when the block exits
    normally and rolled back otherwise.
    """

    @asynccontextmanager
    async def _async_connection(self):
        try:
            conn = await aiosqlite.connect(self._db_path)
        except sqlite3.Error as e:
            raise StorageError(f"cannot open {self._db_path}: {e}") from e
        try:
            yield conn
            await conn.commit()
        except sqlite3.Error as e:
            await conn.rollback()
            logger.error("storage failure on %s: %s", self._db_path, e)
            raise StorageError(str(e)) from e
        except BaseException:
            await conn.rollback()
            raise
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous repository helpers using aiosqlite."""

    async def execute(self, query: str, params: Tuple = ()) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            return cursor.rowcount

    async def executemany(self, query: str, rows: Iterable[Tuple]) -> None:
        async with self._async_connection() as conn:
            await conn.executemany(query, list(rows))

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            return list(await cursor.fetchall())

    async def fetch_one(self, query: str, params: Tuple = ()) -> Optional[Tuple]:
        rows = await self.fetch_all(query, params)
        return rows[0] if rows else None

    async def _delete_all(self, table: str) -> None:
        await self.execute(f"DELETE FROM {table};")


class AsyncRecordRepository(AsyncBaseRepository):
    """Generic get/put/delete/scan for a table holding one record type.

    Subclasses declare the table, its columns and key columns, and how a
    record maps to a row.
    """

    table: str = ""
    columns: Tuple[str, ...] = ()
    key_columns: Tuple[str, ...] = ()

    def _to_row(self, record: Any) -> Tuple:
        raise NotImplementedError

    def _from_row(self, row: Tuple) -> Any:
        raise NotImplementedError

    def _key_params(self, key: Any) -> Tuple:
        if isinstance(key, tuple):
            if len(key) != len(self.key_columns):
                raise ValueError(f"{self.table} key must have {len(self.key_columns)} parts")
            return key
        return (key,)

    def _where_key(self) -> str:
        return " AND ".join(f"{c} = ?" for c in self.key_columns)

    def _upsert_sql(self) -> str:
        cols = ", ".join(self.columns)
        marks = ", ".join("?" for _ in self.columns)
        return f"INSERT OR REPLACE INTO {self.table} ({cols}) VALUES ({marks});"

    async def get(self, key: Any) -> Any:
        row = await self.fetch_one(
            f"SELECT {', '.join(self.columns)} FROM {self.table} WHERE {self._where_key()};",
            self._key_params(key),
        )
        return self._from_row(row) if row is not None else None

    async def put(self, record: Any) -> None:
        await self.execute(self._upsert_sql(), self._to_row(record))

    async def put_many(self, records: Iterable[Any]) -> None:
        await self.executemany(self._upsert_sql(), (self._to_row(r) for r in records))

    async def delete(self, key: Any) -> None:
        await self.execute(
            f"DELETE FROM {self.table} WHERE {self._where_key()};",
            self._key_params(key),
        )

    async def get_all(self) -> list:
        rows = await self.fetch_all(
            f"SELECT {', '.join(self.columns)} FROM {self.table};"
        )
        return [self._from_row(r) for r in rows]

    async def _select_where(self, clause: str, params: Tuple) -> list:
        rows = await self.fetch_all(
            f"SELECT {', '.join(self.columns)} FROM {self.table} WHERE {clause};",
            params,
        )
        return [self._from_row(r) for r in rows]


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


class AsyncWorkoutRepository(AsyncRecordRepository):
    """Async repository for workout records."""

    table = "workouts"
    columns = (
        "id",
        "template_id",
        "template_name",
        "started_at",
        "finished_at",
        "cardio",
        "notes",
    )
    key_columns = ("id",)

    def _to_row(self, workout: Workout) -> Tuple:
        return (
            workout.id,
            workout.template_id,
            workout.template_name,
            _iso(workout.started_at),
            _iso(workout.finished_at),
            json.dumps(workout.cardio.to_dict()) if workout.cardio else None,
            workout.notes,
        )

    def _from_row(self, row: Tuple) -> Workout:
        wid, template_id, template_name, started, finished, cardio, notes = row
        return Workout(
            id=wid,
            template_id=template_id,
            template_name=template_name,
            started_at=started,
            finished_at=finished,
            cardio=json.loads(cardio) if cardio else None,
            notes=notes or "",
        )

    async def delete_cascade(self, workout_id: str) -> list[str]:
        """Delete a workout and its exercise logs in one transaction.

        Returns the exercise ids whose logs were removed.
        """
        async with self._async_connection() as conn:
            cursor = await conn.execute(
                "SELECT exercise_id FROM exercise_logs WHERE workout_id = ?;",
                (workout_id,),
            )
            exercise_ids = [r[0] for r in await cursor.fetchall()]
            await conn.execute(
                "DELETE FROM exercise_logs WHERE workout_id = ?;", (workout_id,)
            )
            await conn.execute("DELETE FROM workouts WHERE id = ?;", (workout_id,))
        return exercise_ids


class AsyncExerciseLogRepository(AsyncRecordRepository):
    """Async repository for exercise logs keyed by (workout_id, exercise_id)."""

    table = "exercise_logs"
    columns = ("workout_id", "exercise_id", "finished_at", "notes", "sets")
    key_columns = ("workout_id", "exercise_id")

    def _to_row(self, log: ExerciseLog) -> Tuple:
        return (
            log.workout_id,
            log.exercise_id,
            _iso(log.finished_at),
            log.notes,
            json.dumps([s.to_dict() for s in log.sets]),
        )

    def _from_row(self, row: Tuple) -> ExerciseLog:
        workout_id, exercise_id, finished, notes, sets = row
        return ExerciseLog(
            workout_id=workout_id,
            exercise_id=exercise_id,
            finished_at=finished,
            notes=notes or "",
            sets=json.loads(sets or "[]"),
        )

    async def fetch_for_exercise(self, exercise_id: str) -> List[ExerciseLog]:
        return await self._select_where("exercise_id = ?", (exercise_id,))

    async def fetch_for_workout(self, workout_id: str) -> List[ExerciseLog]:
        return await self._select_where("workout_id = ?", (workout_id,))

    async def delete_for_workout(self, workout_id: str) -> int:
        """Delete every log of ``workout_id`` and return how many were removed."""
        return await self.execute(
            "DELETE FROM exercise_logs WHERE workout_id = ?;", (workout_id,)
        )


class AsyncActionRepository(AsyncRecordRepository):
    """Async repository for the per-exercise "next time" actions."""

    table = "actions"
    columns = ("exercise_id", "text", "updated_at")
    key_columns = ("exercise_id",)

    def _to_row(self, action: Action) -> Tuple:
        return (action.exercise_id, action.text, _iso(action.updated_at))

    def _from_row(self, row: Tuple) -> Action:
        exercise_id, text, updated = row
        return Action(exercise_id=exercise_id, text=text, updated_at=updated)


class AsyncSettingsRepository(AsyncBaseRepository):
    """Settings stored as key/value rows holding JSON encoded values."""

    KEY = "settings"

    async def _raw_all_settings(self) -> dict:
        rows = await self.fetch_all("SELECT key, value FROM settings ORDER BY key;")
        result: dict = {}
        for k, v in rows:
            try:
                result[k] = json.loads(v)
            except ValueError:
                logger.warning("ignoring undecodable setting %s=%r", k, v)
        return result

    async def get(self, key: Any = None) -> SettingsSchema:
        """Return the stored settings merged over the defaults."""
        return merge_settings(await self._raw_all_settings())

    async def put(self, settings: SettingsSchema) -> None:
        await self.executemany(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            [(k, json.dumps(v)) for k, v in settings.to_dict().items()],
        )

    async def put_many(self, records: Iterable[SettingsSchema]) -> None:
        for settings in records:
            await self.put(settings)

    async def delete(self, key: Any = None) -> None:
        await self._delete_all("settings")

    async def get_all(self) -> List[SettingsSchema]:
        if not await self._raw_all_settings():
            return []
        return [await self.get()]


class Store(AsyncBaseRepository):
    """Keyed persistence for the four collections.

    ``get``/``put``/``delete``/``get_all`` dispatch on the collection name;
    ``wipe_all`` clears every collection in a single transaction.
    """

    COLLECTIONS = ("workouts", "exerciseLogs", "actions", "settings")
    _TABLES = {
        "workouts": "workouts",
        "exerciseLogs": "exercise_logs",
        "actions": "actions",
        "settings": "settings",
    }

    def __init__(self, db_path: str = "workout_log.db") -> None:
        super().__init__(db_path)
        # schema already ensured above
        self.workouts = AsyncWorkoutRepository(db_path, ensure_schema=False)
        self.exercise_logs = AsyncExerciseLogRepository(db_path, ensure_schema=False)
        self.actions = AsyncActionRepository(db_path, ensure_schema=False)
        self.settings = AsyncSettingsRepository(db_path, ensure_schema=False)

    def _repository(self, collection: str):
        repos = {
            "workouts": self.workouts,
            "exerciseLogs": self.exercise_logs,
            "actions": self.actions,
            "settings": self.settings,
        }
        try:
            return repos[collection]
        except KeyError:
            raise ValueError(f"unknown collection: {collection}") from None

    async def get(self, collection: str, key: Any = None) -> Any:
        return await self._repository(collection).get(key)

    async def put(self, collection: str, record: Any) -> None:
        await self._repository(collection).put(record)

    async def put_many(self, collection: str, records: Iterable[Any]) -> None:
        await self._repository(collection).put_many(records)

    async def delete(self, collection: str, key: Any = None) -> None:
        await self._repository(collection).delete(key)

    async def get_all(self, collection: str) -> list:
        return await self._repository(collection).get_all()

    async def wipe_all(self) -> None:
        async with self._async_connection() as conn:
            for collection in self.COLLECTIONS:
                await conn.execute(f"DELETE FROM {self._TABLES[collection]};")
        logger.info("wiped all collections in %s", self._db_path)


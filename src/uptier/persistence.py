"""SQLite connection handling: pragmas, schema, ids, timestamps and transactions."""

from __future__ import annotations

import logging
import secrets
import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path

logger = logging.getLogger(__name__)

SCHEMA_FILE = Path(__file__).with_name("schema.sql")
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# Built-in smart lists seeded into every database. Their ids are fixed so the
# smart-list evaluator can recognise them.
SYSTEM_LISTS: tuple[tuple[str, str, str, str], ...] = (
    ("smart:my_day", "My Day", "sun", "#f59e0b"),
    ("smart:important", "Important", "star", "#ef4444"),
    ("smart:planned", "Planned", "calendar", "#3b82f6"),
    ("smart:completed", "Completed", "check-circle", "#10b981"),
    ("smart:all", "All Tasks", "inbox", "#6b7280"),
)


def generate_id() -> str:
    """32 lowercase hex characters, same shape as the schema default."""
    return secrets.token_hex(16)


class Database:
    """The process-wide database handle.

    One instance is opened at start-up and passed to every component. The
    connection runs in autocommit mode; multi-statement writes go through
    :meth:`transaction`.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.conn = conn
        self.clock = clock
        self._depth = 0

    @classmethod
    def open(
        cls,
        path: str | Path,
        busy_timeout_ms: int = 5000,
        clock: Callable[[], datetime] = datetime.now,
    ) -> Database:
        path = str(path)
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(path, isolation_level=None, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
        conn.execute("PRAGMA foreign_keys = ON")
        db = cls(conn, clock=clock)
        db.initialize()
        logger.debug("Opened database", extra={"path": path})
        return db

    def initialize(self) -> None:
        self.conn.executescript(SCHEMA_FILE.read_text())
        with self.transaction():
            for position, (list_id, name, icon, color) in enumerate(SYSTEM_LISTS):
                self.conn.execute(
                    "INSERT OR IGNORE INTO lists (id, name, icon, color, position, is_smart_list) "
                    "VALUES (?, ?, ?, ?, ?, 1)",
                    (list_id, name, icon, color, position),
                )

    def close(self) -> None:
        self.conn.close()

    # -- time ---------------------------------------------------------------

    def now(self) -> datetime:
        return self.clock()

    def now_iso(self) -> str:
        return self.clock().strftime(TIMESTAMP_FORMAT)

    def today(self) -> date:
        return self.clock().date()

    # -- queries ------------------------------------------------------------

    def execute(self, sql: str, params: tuple | list | dict = ()) -> sqlite3.Cursor:
        return self.conn.execute(sql, params)

    def fetchone(self, sql: str, params: tuple | list | dict = ()) -> sqlite3.Row | None:
        return self.conn.execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: tuple | list | dict = ()) -> list[sqlite3.Row]:
        return self.conn.execute(sql, params).fetchall()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block atomically. Nested blocks become savepoints."""
        if self._depth == 0:
            self.conn.execute("BEGIN IMMEDIATE")
            commit, rollback = "COMMIT", "ROLLBACK"
        else:
            name = f"sp_{self._depth}"
            self.conn.execute(f"SAVEPOINT {name}")
            commit, rollback = f"RELEASE {name}", f"ROLLBACK TO {name}"
        self._depth += 1
        try:
            yield self.conn
        except BaseException:
            self._depth -= 1
            self.conn.execute(rollback)
            if self._depth > 0:
                self.conn.execute(commit)
            raise
        else:
            self._depth -= 1
            self.conn.execute(commit)

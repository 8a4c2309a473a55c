"""SQLite-backed store for finished robots.

One connection per process, shared by the pipeline (single insert at the end
of a run) and read-only listing. Access is serialised with a lock because the
connection is used from whichever thread drives the event loop or the CLI.

Database: ``~/.robotforge/data/robots.db`` (WAL mode).
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Protocol, runtime_checkable

from robotforge.errors import StorageError
from robotforge.models import RobotRecord

logger = logging.getLogger(__name__)

# ── Schema SQL ──────────────────────────────────────────────

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS robots (
    id                  TEXT PRIMARY KEY,
    name                TEXT NOT NULL,
    lore                TEXT NOT NULL,
    hp                  INTEGER NOT NULL,
    atk                 INTEGER NOT NULL,
    def                 INTEGER NOT NULL,
    original_image_path TEXT NOT NULL,
    image_path          TEXT NOT NULL,
    model_path          TEXT NOT NULL,
    attack_model_path   TEXT NOT NULL,
    created_at          INTEGER NOT NULL,
    generation_time_ms  INTEGER NOT NULL
);
"""

_COLUMNS = (
    "id", "name", "lore", "hp", "atk", "def",
    "original_image_path", "image_path", "model_path", "attack_model_path",
    "created_at", "generation_time_ms",
)


@runtime_checkable
class ResultRepository(Protocol):
    """Insert-and-list store for finished records."""

    def insert(self, record: RobotRecord) -> None:
        ...

    def list_all(self) -> list[RobotRecord]:
        ...


class RobotRepository:
    """SQLite implementation of :class:`ResultRepository`.

    Pass ``":memory:"`` as *db_path* for a throwaway store.
    """

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = db_path
        self._lock = threading.Lock()
        try:
            if isinstance(db_path, Path):
                db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        except (OSError, sqlite3.Error) as e:
            msg = f"Failed to open robot database {db_path}: {e}"
            raise StorageError(msg) from e
        self._conn.row_factory = sqlite3.Row
        try:
            if str(db_path) != ":memory:":
                self._conn.execute("PRAGMA journal_mode=WAL")
            with self._conn:
                self._conn.executescript(_SCHEMA_SQL)
        except sqlite3.Error as e:
            self._conn.close()
            msg = f"Failed to open robot database {db_path}: {e}"
            raise StorageError(msg) from e

    def insert(self, record: RobotRecord) -> None:
        row = record.model_dump(by_alias=True)
        placeholders = ", ".join("?" for _ in _COLUMNS)
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    f"INSERT INTO robots ({', '.join(_COLUMNS)}) VALUES ({placeholders})",  # noqa: S608
                    tuple(row[c] for c in _COLUMNS),
                )
        except sqlite3.Error as exc:
            msg = f"Failed to insert robot {record.id}: {exc}"
            raise StorageError(msg) from exc
        logger.info("Stored robot %s (%s)", record.id, record.name)

    def list_all(self) -> list[RobotRecord]:
        """Return every record in insertion order."""
        try:
            with self._lock:
                rows = self._conn.execute(
                    f"SELECT {', '.join(_COLUMNS)} FROM robots ORDER BY rowid",  # noqa: S608
                ).fetchall()
        except sqlite3.Error as exc:
            msg = f"Failed to list robots: {exc}"
            raise StorageError(msg) from exc
        return [RobotRecord.model_validate(dict(r)) for r in rows]

    def close(self) -> None:
        with self._lock:
            self._conn.close()


# ── Process-wide accessor ───────────────────────────────────

_repository: RobotRepository | None = None
_repository_lock = threading.Lock()


def get_repository(db_path: Path) -> RobotRepository:
    """Return the process-wide repository, opening it on first use."""
    global _repository

    with _repository_lock:
        if _repository is None:
            _repository = RobotRepository(db_path)
        return _repository


def reset_repository() -> None:
    """Close and forget the process-wide repository (for shutdown and tests)."""
    global _repository

    with _repository_lock:
        if _repository is not None:
            _repository.close()
        _repository = None

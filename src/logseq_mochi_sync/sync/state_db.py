"""SQLite persistence of the block-to-card id map.

Security Note:
    All SQL queries in this module use parameterized statements (? placeholders).
    Never use string formatting or concatenation to build SQL queries.
"""

import sqlite3
import time
from pathlib import Path
from typing import Any

from logseq_mochi_sync.domain.interfaces.state_repository import IIdMapRepository
from logseq_mochi_sync.error_codes import ErrorCode
from logseq_mochi_sync.exceptions import StateError
from logseq_mochi_sync.utils.logging import get_logger

logger = get_logger(__name__)


class StateDB(IIdMapRepository):
    """SQLite database holding the id map.

    The map is read once at the start of a run and replaced as a whole at the
    end, inside a single transaction, so an interrupted save leaves the
    previous map intact.

    Usage:
        with StateDB(db_path) as db:
            id_map = db.load_id_map()
            ...
            db.save_id_map(id_map)
    """

    def __init__(self, db_path: Path):
        """Open (and create if needed) the database at ``db_path``."""
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._init_schema()

    def _get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            try:
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(str(self._db_path))
            except (OSError, sqlite3.Error) as e:
                msg = f"Cannot open id map database {self._db_path}: {e}"
                raise StateError(
                    msg,
                    suggestion="Check data_dir and db_path in the configuration",
                    error_code=ErrorCode.STA_DB_WRITE_FAILED.value,
                ) from e
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            self._conn = conn
            logger.debug("db_connection_created", db_path=str(self._db_path))
        return self._conn

    def _execute_query(
        self, query: str, params: tuple = (), operation: str = "query"
    ) -> sqlite3.Cursor:
        start_time = time.time()
        try:
            cursor = self._get_connection().execute(query, params)
        except sqlite3.Error as e:
            logger.error(
                "db_query_error",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
            )
            msg = f"Id map database error during {operation}: {e}"
            raise StateError(msg, error_code=ErrorCode.STA_DB_WRITE_FAILED.value) from e

        logger.debug(
            "db_query",
            operation=operation,
            duration=round(time.time() - start_time, 4),
            params_count=len(params),
        )
        return cursor

    def _init_schema(self) -> None:
        self._execute_query(
            """
            CREATE TABLE IF NOT EXISTS id_map (
                block_uuid TEXT PRIMARY KEY,
                remote_id TEXT NOT NULL,
                synced_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """,
            operation="init_schema",
        )
        self._get_connection().commit()

    def load_id_map(self) -> dict[str, str]:
        rows = self._execute_query(
            "SELECT block_uuid, remote_id FROM id_map", operation="load_id_map"
        ).fetchall()
        return {row["block_uuid"]: row["remote_id"] for row in rows}

    def save_id_map(self, id_map: dict[str, str]) -> None:
        conn = self._get_connection()
        try:
            with conn:
                conn.execute("DELETE FROM id_map")
                conn.executemany(
                    "INSERT INTO id_map (block_uuid, remote_id) VALUES (?, ?)",
                    sorted(id_map.items()),
                )
        except sqlite3.Error as e:
            msg = f"Failed to save id map: {e}"
            raise StateError(
                msg,
                error_code=ErrorCode.STA_DB_WRITE_FAILED.value,
                context={"entries": len(id_map)},
            ) from e
        logger.info("id_map_saved", entries=len(id_map))

    def get_entries(self) -> list[dict[str, Any]]:
        """Return every mapping row, ordered by block uuid."""
        rows = self._execute_query(
            "SELECT block_uuid, remote_id, synced_at FROM id_map ORDER BY block_uuid",
            operation="get_entries",
        ).fetchall()
        return [dict(row) for row in rows]

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.debug("db_connection_closed", db_path=str(self._db_path))

    def __enter__(self) -> "StateDB":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit."""
        self.close()

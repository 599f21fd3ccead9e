"""
Row store for applicants and stages (SQLite).

Implements the persistence contract the sync layer relies on. No method
raises: failures are logged and reported as False / None so callers can
branch on the result.
"""
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Sequence

from .events import ChangeFeed, Rows
from .schema import DEFAULT_STAGES, Applicant

logger = logging.getLogger(__name__)

# entity -> writable columns
ENTITY_COLUMNS: Dict[str, tuple] = {
    "applicants": (
        "id", "name", "stage", "registration_type", "applied_date",
        "evaluation_current", "evaluation_total", "position",
    ),
    "stages": ("id", "title", "color", "position", "is_fixed"),
}


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection in WAL mode with dict-like rows."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SqliteRowStore:
    """SQLite-backed row store with a change feed."""

    def __init__(
        self,
        db_path: str,
        feed: Optional[ChangeFeed] = None,
        seed_applicants: Optional[Sequence[Applicant]] = None,
    ):
        """Create tables if needed and seed default stages into an empty database."""
        self.db_path = db_path
        self.feed = feed or ChangeFeed()
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()
        self._seed(seed_applicants or [])

    def _init_schema(self):
        with _connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS stages (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    color TEXT NOT NULL,
                    position INTEGER DEFAULT 0,
                    is_fixed INTEGER DEFAULT 0,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS applicants (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    stage TEXT NOT NULL,
                    registration_type TEXT NOT NULL DEFAULT 'direct',
                    applied_date TEXT DEFAULT '',
                    evaluation_current INTEGER DEFAULT 0,
                    evaluation_total INTEGER DEFAULT 1,
                    position INTEGER DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_applicants_stage ON applicants(stage)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_applicants_position ON applicants(position)")
            conn.commit()

    def _seed(self, applicants: Sequence[Applicant]) -> None:
        with _connect(self.db_path) as conn:
            now = _utc_now()
            if conn.execute("SELECT COUNT(*) FROM stages").fetchone()[0] == 0:
                for position, stage in enumerate(DEFAULT_STAGES):
                    conn.execute(
                        "INSERT INTO stages (id, title, color, position, is_fixed, created_at) "
                        "VALUES (?, ?, ?, ?, ?, ?)",
                        (stage.id, stage.title, stage.color, position, int(stage.is_fixed), now),
                    )
            if applicants and conn.execute("SELECT COUNT(*) FROM applicants").fetchone()[0] == 0:
                positions: Dict[str, int] = {}
                for applicant in applicants:
                    position = positions.get(applicant.stage, 0)
                    positions[applicant.stage] = position + 1
                    row = applicant.to_row(position)
                    conn.execute(
                        "INSERT INTO applicants (id, name, stage, registration_type, applied_date, "
                        "evaluation_current, evaluation_total, position, created_at, updated_at) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                        (row["id"], row["name"], row["stage"], row["registration_type"],
                         row["applied_date"], row["evaluation_current"], row["evaluation_total"],
                         row["position"], now, now),
                    )
            conn.commit()

    # ── helpers ──────────────────────────────────────────────────────────────

    @staticmethod
    def _check(entity: str, fields: Iterable[str] = ()) -> None:
        columns = ENTITY_COLUMNS.get(entity)
        if columns is None:
            raise ValueError(f"Unknown entity: {entity}")
        bad = [f for f in fields if f not in columns]
        if bad:
            raise ValueError(f"Unknown {entity} columns: {bad}")

    @staticmethod
    def _row_to_dict(entity: str, row: sqlite3.Row) -> Dict[str, Any]:
        data = dict(row)
        if entity == "stages":
            data["is_fixed"] = bool(data.get("is_fixed", 0))
        return data

    def _notify(self, entity: str) -> None:
        if not self.feed.has_subscribers(entity):
            return
        rows = self.list_all(entity)
        if rows is not None:
            self.feed.publish(entity, rows)

    def next_applicant_id(self) -> str:
        """Next sequential applicant id (APP-001, APP-002, ...)."""
        with _connect(self.db_path) as conn:
            numbers = []
            for (value,) in conn.execute("SELECT id FROM applicants WHERE id LIKE 'APP-%'"):
                try:
                    numbers.append(int(value.split("-")[1]))
                except (IndexError, ValueError):
                    pass
        return f"APP-{max(numbers, default=0) + 1:03d}"

    # ── contract ─────────────────────────────────────────────────────────────

    def list_all(self, entity: str) -> Optional[Rows]:
        """All rows ordered by position. None when the read failed."""
        try:
            self._check(entity)
            with _connect(self.db_path) as conn:
                rows = conn.execute(
                    f"SELECT * FROM {entity} ORDER BY position ASC, created_at ASC, rowid ASC"
                ).fetchall()
            return [self._row_to_dict(entity, r) for r in rows]
        except Exception as e:
            logger.error(f"Error listing {entity}: {e}")
            return None

    def insert(self, entity: str, fields: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Insert a row and return it as stored, or None on failure.

        An applicant inserted with a position takes that slot in its stage;
        the stage's cards at or after it move down one.
        """
        try:
            data = dict(fields)
            if entity == "applicants" and not data.get("id"):
                data["id"] = self.next_applicant_id()
            self._check(entity, data)
            if not data.get("id"):
                raise ValueError(f"{entity} rows need an id")
            now = _utc_now()
            data["created_at"] = now
            if entity == "applicants":
                data["updated_at"] = now
            if "is_fixed" in data:
                data["is_fixed"] = int(bool(data["is_fixed"]))
            columns = ", ".join(data)
            placeholders = ", ".join("?" for _ in data)
            with _connect(self.db_path) as conn:
                if entity == "applicants" and data.get("position") is not None:
                    # Open the slot: cards at or after it shift down one
                    conn.execute(
                        "UPDATE applicants SET position = position + 1 "
                        "WHERE stage = ? AND position >= ?",
                        (data.get("stage"), data["position"]),
                    )
                conn.execute(
                    f"INSERT INTO {entity} ({columns}) VALUES ({placeholders})",
                    tuple(data.values()),
                )
                conn.commit()
                row = conn.execute(f"SELECT * FROM {entity} WHERE id = ?", (data["id"],)).fetchone()
            self._notify(entity)
            return self._row_to_dict(entity, row)
        except Exception as e:
            logger.error(f"Error inserting into {entity}: {e}")
            return None

    def delete(self, entity: str, row_id: str) -> bool:
        """Delete a row by id. Fixed stages are never deleted."""
        try:
            self._check(entity)
            with _connect(self.db_path) as conn:
                if entity == "stages":
                    row = conn.execute("SELECT is_fixed FROM stages WHERE id = ?", (row_id,)).fetchone()
                    if row and row["is_fixed"]:
                        logger.error(f"Cannot delete fixed stage {row_id}")
                        return False
                conn.execute(f"DELETE FROM {entity} WHERE id = ?", (row_id,))
                conn.commit()
            self._notify(entity)
            return True
        except Exception as e:
            logger.error(f"Error deleting {entity} {row_id}: {e}")
            return False

    def update_fields(self, entity: str, row_id: str, fields: Mapping[str, Any]) -> bool:
        return self.update_fields_for_ids(entity, [row_id], fields)

    def update_fields_for_ids(self, entity: str, row_ids: Sequence[str], fields: Mapping[str, Any]) -> bool:
        """Apply the same column values to every listed row in one statement."""
        try:
            self._check(entity, fields)
            ids = list(row_ids)
            if not ids or not fields:
                return True
            data = dict(fields)
            if entity == "applicants":
                data["updated_at"] = _utc_now()
            assignments = ", ".join(f"{column} = ?" for column in data)
            placeholders = ", ".join("?" for _ in ids)
            with _connect(self.db_path) as conn:
                conn.execute(
                    f"UPDATE {entity} SET {assignments} WHERE id IN ({placeholders})",
                    tuple(data.values()) + tuple(ids),
                )
                conn.commit()
            self._notify(entity)
            return True
        except Exception as e:
            logger.error(f"Error updating {entity} {list(row_ids)}: {e}")
            return False

    def update_positions(self, entity: str, updates: Sequence[Mapping[str, Any]]) -> bool:
        """
        Write one position per row, each in its own transaction.

        Rows written before a failure stay written; the call still reports
        failure so the caller can refetch.
        """
        try:
            self._check(entity)
        except ValueError as e:
            logger.error(f"Error updating positions: {e}")
            return False
        ok = True
        for update in updates:
            try:
                with _connect(self.db_path) as conn:
                    conn.execute(
                        f"UPDATE {entity} SET position = ? WHERE id = ?",
                        (int(update["position"]), update["id"]),
                    )
                    conn.commit()
            except Exception as e:
                logger.error(f"Error updating position of {entity} {update.get('id')}: {e}")
                ok = False
        if updates:
            self._notify(entity)
        return ok

    def subscribe_to_changes(self, entity: str, callback: Callable[[Rows], None]) -> Callable[[], None]:
        """Push the full table to callback after every successful write to it."""
        return self.feed.subscribe(entity, callback)

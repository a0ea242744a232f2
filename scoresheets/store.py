from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, List, Mapping, Optional, Protocol

from fastapi.concurrency import run_in_threadpool

from .catalog import SheetType
from .errors import SheetNotFoundError, StateConflictError, TransportError, ValidationError
from .fields import FIELD_NAMES, FieldValue, SheetLayout
from .models import ScoreSheet

logger = logging.getLogger(__name__)


class SheetStore(Protocol):
    """Persistence operations the engine relies on. Every call may suspend."""

    async def get_sheet_mapping(self, judge_id: int, team_id: int, sheet_type: int) -> Optional[int]: ...

    async def get_sheet(self, sheet_id: int) -> ScoreSheet: ...

    async def create_sheet(
        self, judge_id: int, team_id: int, sheet_type: int, fields: Optional[Mapping[str, FieldValue]] = None
    ) -> ScoreSheet: ...

    async def save_fields(self, sheet_id: int, fields: Mapping[str, FieldValue]) -> ScoreSheet: ...

    async def submit_sheet(self, sheet_id: int, fields: Mapping[str, FieldValue], sheet_type: int) -> ScoreSheet: ...

    async def delete_sheet(self, sheet_id: int) -> None: ...

    async def list_judge_sheets(self, judge_id: int) -> List[ScoreSheet]: ...


_FIELD_COLUMNS = ",\n                ".join(FIELD_NAMES)

SCHEMA = f"""
            CREATE TABLE IF NOT EXISTS scoresheets (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                sheet_type INTEGER NOT NULL,
                is_submitted INTEGER NOT NULL DEFAULT 0,
                updated_at TEXT NOT NULL,
                {_FIELD_COLUMNS}
            );

            -- one sheet per (judge, team, sheet type)
            CREATE TABLE IF NOT EXISTS sheet_mappings (
                judge_id INTEGER NOT NULL,
                team_id INTEGER NOT NULL,
                sheet_type INTEGER NOT NULL,
                sheet_id INTEGER NOT NULL,
                PRIMARY KEY (judge_id, team_id, sheet_type)
            );
            """

_SELECT = """
    SELECT s.*, m.judge_id AS judge_id, m.team_id AS team_id
    FROM scoresheets s
    LEFT JOIN sheet_mappings m ON m.sheet_id = s.id
"""


def _now() -> str:
    return datetime.utcnow().isoformat(timespec="seconds")


def _checked_fields(fields: Mapping[str, FieldValue]) -> Dict[str, FieldValue]:
    unknown = [name for name in fields if name not in FIELD_NAMES]
    if unknown:
        raise ValidationError(f"Unknown score sheet fields: {', '.join(sorted(unknown))}.")
    return dict(fields)


def _row_to_sheet(row: sqlite3.Row) -> ScoreSheet:
    return ScoreSheet(
        id=row["id"],
        sheet_type=SheetType(row["sheet_type"]),
        is_submitted=bool(row["is_submitted"]),
        fields={name: row[name] for name in FIELD_NAMES if row[name] is not None},
        judge_id=row["judge_id"],
        team_id=row["team_id"],
    )


class SqliteSheetStore:
    """``SheetStore`` on a local SQLite file, one connection per call."""

    def __init__(self, db_path: str, layouts: Mapping[SheetType, SheetLayout]):
        self.db_path = db_path
        self.layouts = layouts

    # -----------------------
    # DB helpers
    # -----------------------
    @contextmanager
    def db(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise TransportError(f"Cannot open score sheet database: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            raise TransportError(f"Score sheet database error: {e}") from e
        finally:
            conn.close()

    def init_db(self) -> None:
        with self.db() as conn:
            conn.executescript(SCHEMA)

    def _fetch(self, conn: sqlite3.Connection, sheet_id: int) -> ScoreSheet:
        row = conn.execute(_SELECT + " WHERE s.id=?", (sheet_id,)).fetchone()
        if not row:
            raise SheetNotFoundError(f"Score sheet {sheet_id} not found.")
        return _row_to_sheet(row)

    def _write(self, sheet_id: int, fields: Mapping[str, FieldValue], submit: bool, sheet_type: Optional[int]) -> ScoreSheet:
        values = _checked_fields(fields)
        assignments = [f"{name}=?" for name in values] + ["updated_at=?"]
        params: list = list(values.values()) + [_now()]
        if submit:
            assignments.append("is_submitted=1")
        if sheet_type is not None:
            assignments.append("sheet_type=?")
            params.append(int(sheet_type))
        with self.db() as conn:
            # Guarded update so a submitted row can never be rewritten.
            cur = conn.execute(
                f"UPDATE scoresheets SET {', '.join(assignments)} WHERE id=? AND is_submitted=0",
                (*params, sheet_id),
            )
            if cur.rowcount == 0:
                existing = self._fetch(conn, sheet_id)
                if existing.is_submitted:
                    raise StateConflictError(f"Score sheet {sheet_id} is already submitted.")
            return self._fetch(conn, sheet_id)

    # -----------------------
    # Synchronous operations
    # -----------------------
    def get_sheet_mapping_sync(self, judge_id: int, team_id: int, sheet_type: int) -> Optional[int]:
        with self.db() as conn:
            row = conn.execute(
                "SELECT sheet_id FROM sheet_mappings WHERE judge_id=? AND team_id=? AND sheet_type=?",
                (judge_id, team_id, int(sheet_type)),
            ).fetchone()
        return None if row is None else row["sheet_id"]

    def get_sheet_sync(self, sheet_id: int) -> ScoreSheet:
        with self.db() as conn:
            return self._fetch(conn, sheet_id)

    def create_sheet_sync(
        self, judge_id: int, team_id: int, sheet_type: int, fields: Optional[Mapping[str, FieldValue]] = None
    ) -> ScoreSheet:
        sheet_type = SheetType(sheet_type)
        values = self.layouts[sheet_type].default_fields()
        values.update(_checked_fields(fields or {}))
        with self.db() as conn:
            existing = conn.execute(
                "SELECT sheet_id FROM sheet_mappings WHERE judge_id=? AND team_id=? AND sheet_type=?",
                (judge_id, team_id, int(sheet_type)),
            ).fetchone()
            if existing:
                return self._fetch(conn, existing["sheet_id"])

            columns = ["sheet_type", "is_submitted", "updated_at", *values]
            placeholders = ",".join(["?"] * len(columns))
            conn.execute(
                f"INSERT INTO scoresheets({', '.join(columns)}) VALUES({placeholders})",
                (int(sheet_type), 0, _now(), *values.values()),
            )
            sheet_id = conn.execute("SELECT last_insert_rowid() AS id").fetchone()["id"]
            conn.execute(
                "INSERT INTO sheet_mappings(judge_id, team_id, sheet_type, sheet_id) VALUES(?,?,?,?)",
                (judge_id, team_id, int(sheet_type), sheet_id),
            )
            logger.info(
                "Created %s sheet %s for judge %s, team %s", sheet_type.label, sheet_id, judge_id, team_id
            )
            return self._fetch(conn, sheet_id)

    def save_fields_sync(self, sheet_id: int, fields: Mapping[str, FieldValue]) -> ScoreSheet:
        return self._write(sheet_id, fields, submit=False, sheet_type=None)

    def submit_sheet_sync(self, sheet_id: int, fields: Mapping[str, FieldValue], sheet_type: int) -> ScoreSheet:
        return self._write(sheet_id, fields, submit=True, sheet_type=sheet_type)

    def delete_sheet_sync(self, sheet_id: int) -> None:
        with self.db() as conn:
            self._fetch(conn, sheet_id)
            conn.execute("DELETE FROM sheet_mappings WHERE sheet_id=?", (sheet_id,))
            conn.execute("DELETE FROM scoresheets WHERE id=?", (sheet_id,))

    def list_judge_sheets_sync(self, judge_id: int) -> List[ScoreSheet]:
        with self.db() as conn:
            rows = conn.execute(
                _SELECT + " WHERE m.judge_id=? ORDER BY m.team_id, s.sheet_type", (judge_id,)
            ).fetchall()
        return [_row_to_sheet(r) for r in rows]

    # -----------------------
    # SheetStore
    # -----------------------
    async def get_sheet_mapping(self, judge_id: int, team_id: int, sheet_type: int) -> Optional[int]:
        return await run_in_threadpool(self.get_sheet_mapping_sync, judge_id, team_id, sheet_type)

    async def get_sheet(self, sheet_id: int) -> ScoreSheet:
        return await run_in_threadpool(self.get_sheet_sync, sheet_id)

    async def create_sheet(
        self, judge_id: int, team_id: int, sheet_type: int, fields: Optional[Mapping[str, FieldValue]] = None
    ) -> ScoreSheet:
        return await run_in_threadpool(self.create_sheet_sync, judge_id, team_id, sheet_type, fields)

    async def save_fields(self, sheet_id: int, fields: Mapping[str, FieldValue]) -> ScoreSheet:
        return await run_in_threadpool(self.save_fields_sync, sheet_id, fields)

    async def submit_sheet(self, sheet_id: int, fields: Mapping[str, FieldValue], sheet_type: int) -> ScoreSheet:
        return await run_in_threadpool(self.submit_sheet_sync, sheet_id, fields, sheet_type)

    async def delete_sheet(self, sheet_id: int) -> None:
        await run_in_threadpool(self.delete_sheet_sync, sheet_id)

    async def list_judge_sheets(self, judge_id: int) -> List[ScoreSheet]:
        return await run_in_threadpool(self.list_judge_sheets_sync, judge_id)

"""
SQLiteTrayAdapter — a durable local tray.

Stands in for the OS notification tray on hosts without one (the CLI, tests,
desktop daemons), so pending notifications survive restarts and can be
rehydrated.

DB: ~/.beacon/tray.db

Table: tray
    identity   INT   PK
    state      TEXT  ('shown' | 'scheduled')
    title      TEXT
    body       TEXT
    payload    TEXT
    fire_at    TEXT  (ISO-8601, NULL when shown)
    created_at INT
"""

from __future__ import annotations

import logging
import sqlite3
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from beacon.adapters.base import NotificationAdapter

logger = logging.getLogger(__name__)

SHOWN = "shown"
SCHEDULED = "scheduled"


@dataclass
class TrayRow:
    identity: int
    state: str
    title: str
    body: str
    payload: str
    fire_at: datetime | None
    created_at: int


class SQLiteTrayAdapter(NotificationAdapter):
    """
    SQLite-backed tray.

    Usage:
        tray = SQLiteTrayAdapter()
        tray.initialize()

        tray.request_schedule(identity, title, body, payload, fire_at)
        tray.pending()
        tray.close()
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path or (Path.home() / ".beacon" / "tray.db")
        self._db: sqlite3.Connection | None = None

    @property
    def name(self) -> str:
        return "sqlite"

    def initialize(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        db = self._get_db()
        db.execute("PRAGMA journal_mode=WAL")
        db.execute("""
            CREATE TABLE IF NOT EXISTS tray (
                identity   INTEGER PRIMARY KEY,
                state      TEXT NOT NULL,
                title      TEXT NOT NULL,
                body       TEXT NOT NULL,
                payload    TEXT NOT NULL,
                fire_at    TEXT,
                created_at INTEGER NOT NULL
            )
        """)
        db.commit()
        logger.debug(f"SQLiteTrayAdapter initialised at {self._db_path}")

    def _get_db(self) -> sqlite3.Connection:
        if self._db is None:
            db = sqlite3.connect(str(self._db_path), check_same_thread=False)
            db.row_factory = sqlite3.Row
            self._db = db
        return self._db

    # ── NotificationAdapter ──────────────────────────────────────────────────

    def request_show(self, identity: int, title: str, body: str, payload: str) -> bool:
        self._upsert(identity, SHOWN, title, body, payload, None)
        return True

    def request_schedule(
        self,
        identity: int,
        title: str,
        body: str,
        payload: str,
        fire_at: datetime,
    ) -> bool:
        self._upsert(identity, SCHEDULED, title, body, payload, fire_at.isoformat())
        return True

    def request_cancel(self, identity: int) -> bool:
        db = self._get_db()
        db.execute("DELETE FROM tray WHERE identity=?", (identity,))
        db.commit()
        return True

    def request_cancel_all(self) -> bool:
        db = self._get_db()
        db.execute("DELETE FROM tray")
        db.commit()
        return True

    def pending(self) -> list[tuple[int, str]]:
        rows = self._get_db().execute(
            "SELECT identity, payload FROM tray WHERE state=? ORDER BY created_at ASC",
            (SCHEDULED,),
        ).fetchall()
        return [(r["identity"], r["payload"]) for r in rows]

    # ── Inspection ───────────────────────────────────────────────────────────

    def rows(self) -> list[TrayRow]:
        """Every tray row, oldest first."""
        rows = self._get_db().execute(
            "SELECT * FROM tray ORDER BY created_at ASC, identity ASC"
        ).fetchall()
        return [self._to_row(r) for r in rows]

    def get(self, identity: int) -> TrayRow | None:
        row = self._get_db().execute(
            "SELECT * FROM tray WHERE identity=?", (identity,)
        ).fetchone()
        return self._to_row(row) if row else None

    def close(self) -> None:
        if self._db:
            self._db.close()
            self._db = None

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _upsert(
        self,
        identity: int,
        state: str,
        title: str,
        body: str,
        payload: str,
        fire_at: str | None,
    ) -> None:
        db = self._get_db()
        db.execute(
            """
            INSERT INTO tray (identity, state, title, body, payload, fire_at, created_at)
            VALUES (:identity, :state, :title, :body, :payload, :fire_at, :created_at)
            ON CONFLICT(identity) DO UPDATE SET
                state=excluded.state, title=excluded.title, body=excluded.body,
                payload=excluded.payload, fire_at=excluded.fire_at
            """,
            {
                "identity": identity,
                "state": state,
                "title": title,
                "body": body,
                "payload": payload,
                "fire_at": fire_at,
                "created_at": int(time.time()),
            },
        )
        db.commit()

    @staticmethod
    def _to_row(row: sqlite3.Row) -> TrayRow:
        d = dict(row)
        fire_at = d["fire_at"]
        return TrayRow(
            identity=d["identity"],
            state=d["state"],
            title=d["title"],
            body=d["body"],
            payload=d["payload"],
            fire_at=datetime.fromisoformat(fire_at) if fire_at else None,
            created_at=d["created_at"],
        )

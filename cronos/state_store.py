from __future__ import annotations

import json
import sqlite3
import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from cronos.models import CalendarEvent, EventId, Template


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


class StateStore:
    def __init__(self, db_path: str) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        schema_sql = """
        CREATE TABLE IF NOT EXISTS events (
            user_id TEXT NOT NULL,
            id TEXT NOT NULL,
            date TEXT NOT NULL,
            title TEXT NOT NULL,
            rank INTEGER,
            type TEXT NOT NULL,
            template_id TEXT NOT NULL DEFAULT '',
            content TEXT NOT NULL DEFAULT '',
            title_color TEXT,
            completed INTEGER NOT NULL DEFAULT 0,
            updated_at TEXT NOT NULL,
            PRIMARY KEY (user_id, id)
        );

        CREATE TABLE IF NOT EXISTS templates (
            user_id TEXT NOT NULL,
            id TEXT NOT NULL,
            type TEXT NOT NULL,
            title TEXT NOT NULL,
            content TEXT NOT NULL,
            title_color TEXT,
            updated_at TEXT NOT NULL,
            PRIMARY KEY (user_id, id)
        );

        CREATE TABLE IF NOT EXISTS audit_events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            created_at TEXT NOT NULL,
            user_id TEXT NOT NULL,
            event_id TEXT NOT NULL,
            action TEXT NOT NULL,
            details_json TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS app_meta (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );
        """
        with self._lock:
            with self._connect() as conn:
                conn.executescript(schema_sql)

    @staticmethod
    def _event_from_row(row: sqlite3.Row) -> CalendarEvent:
        item = dict(row)
        item["completed"] = bool(item.get("completed"))
        return CalendarEvent.from_dict(item)

    def list_events(self, user_id: str) -> list[CalendarEvent]:
        with self._lock:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT id, date, title, rank, type, template_id, content, title_color, completed
                    FROM events
                    WHERE user_id = ?
                    ORDER BY date, rank, title
                    """,
                    (user_id,),
                ).fetchall()
        return [self._event_from_row(row) for row in rows]

    def get_event(self, user_id: str, event_id: str) -> CalendarEvent | None:
        with self._lock:
            with self._connect() as conn:
                row = conn.execute(
                    """
                    SELECT id, date, title, rank, type, template_id, content, title_color, completed
                    FROM events
                    WHERE user_id = ? AND id = ?
                    """,
                    (user_id, str(event_id)),
                ).fetchone()
        return self._event_from_row(row) if row else None

    def upsert_event(self, user_id: str, event: CalendarEvent) -> CalendarEvent:
        saved = event if event.id else event.with_updates(id=EventId(_new_id()))
        with self._lock:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO events(
                        user_id, id, date, title, rank, type, template_id, content, title_color, completed, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(user_id, id) DO UPDATE SET
                        date = excluded.date,
                        title = excluded.title,
                        rank = excluded.rank,
                        type = excluded.type,
                        template_id = excluded.template_id,
                        content = excluded.content,
                        title_color = excluded.title_color,
                        completed = excluded.completed,
                        updated_at = excluded.updated_at
                    """,
                    (
                        user_id,
                        saved.id,
                        str(saved.date),
                        saved.title,
                        saved.rank,
                        saved.type.value,
                        saved.template_id,
                        saved.content,
                        saved.title_color,
                        int(saved.completed),
                        _utc_now(),
                    ),
                )
                conn.commit()
        return saved

    def delete_event(self, user_id: str, event_id: str) -> bool:
        with self._lock:
            with self._connect() as conn:
                cursor = conn.execute(
                    "DELETE FROM events WHERE user_id = ? AND id = ?",
                    (user_id, str(event_id)),
                )
                conn.commit()
                return cursor.rowcount > 0

    def list_templates(self, user_id: str) -> list[Template]:
        with self._lock:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT id, type, title, content, title_color
                    FROM templates
                    WHERE user_id = ?
                    ORDER BY type, title
                    """,
                    (user_id,),
                ).fetchall()
        return [Template.from_dict(dict(row)) for row in rows]

    def get_template(self, user_id: str, template_id: str) -> Template | None:
        with self._lock:
            with self._connect() as conn:
                row = conn.execute(
                    """
                    SELECT id, type, title, content, title_color
                    FROM templates
                    WHERE user_id = ? AND id = ?
                    """,
                    (user_id, str(template_id)),
                ).fetchone()
        return Template.from_dict(dict(row)) if row else None

    def upsert_template(self, user_id: str, template: Template) -> Template:
        saved = template if template.id else replace(template, id=_new_id())
        with self._lock:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO templates(user_id, id, type, title, content, title_color, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(user_id, id) DO UPDATE SET
                        type = excluded.type,
                        title = excluded.title,
                        content = excluded.content,
                        title_color = excluded.title_color,
                        updated_at = excluded.updated_at
                    """,
                    (
                        user_id,
                        saved.id,
                        saved.type.value,
                        saved.title,
                        saved.content,
                        saved.title_color,
                        _utc_now(),
                    ),
                )
                conn.commit()
        return saved

    def delete_template(self, user_id: str, template_id: str) -> bool:
        with self._lock:
            with self._connect() as conn:
                cursor = conn.execute(
                    "DELETE FROM templates WHERE user_id = ? AND id = ?",
                    (user_id, str(template_id)),
                )
                conn.commit()
                return cursor.rowcount > 0

    def record_audit_event(
        self,
        *,
        user_id: str,
        event_id: str,
        action: str,
        details: dict[str, Any],
    ) -> None:
        with self._lock:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO audit_events(created_at, user_id, event_id, action, details_json)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (_utc_now(), user_id, str(event_id), action, json.dumps(details, ensure_ascii=False)),
                )
                conn.commit()

    def recent_audit_events(self, user_id: str, limit: int = 100) -> list[dict[str, Any]]:
        with self._lock:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT id, created_at, user_id, event_id, action, details_json
                    FROM audit_events
                    WHERE user_id = ?
                    ORDER BY id DESC
                    LIMIT ?
                    """,
                    (user_id, max(1, limit)),
                ).fetchall()
        output: list[dict[str, Any]] = []
        for row in rows:
            item = dict(row)
            item["details"] = json.loads(item.pop("details_json") or "{}")
            output.append(item)
        return output

    def set_meta(self, key: str, value: str) -> None:
        with self._lock:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO app_meta(key, value, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (str(key), str(value), _utc_now()),
                )
                conn.commit()

    def get_meta(self, key: str) -> str | None:
        with self._lock:
            with self._connect() as conn:
                row = conn.execute(
                    """
                    SELECT value
                    FROM app_meta
                    WHERE key = ?
                    """,
                    (str(key),),
                ).fetchone()
        if row is None:
            return None
        return str(row["value"])

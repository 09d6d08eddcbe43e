from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from core.enums import ConversationState, FileRecordStatus
from core.models import FileRecord, Session


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SqliteBotRepository:
    def __init__(self, sqlite_path: str) -> None:
        self.sqlite_path = Path(sqlite_path)
        self.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.sqlite_path, timeout=10)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS processed_updates (
                    event_id TEXT PRIMARY KEY,
                    received_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS conversation_sessions (
                    conversation_id TEXT PRIMARY KEY,
                    state TEXT NOT NULL,
                    pending_json TEXT,
                    expires_at TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS file_records (
                    pin TEXT PRIMARY KEY,
                    status TEXT NOT NULL,
                    remote_file_ref TEXT,
                    display_name TEXT,
                    mime_type TEXT,
                    size_bytes INTEGER,
                    owner_id TEXT NOT NULL,
                    uploaded_at TEXT,
                    created_at TEXT NOT NULL
                );
                """
            )
            conn.commit()

    def mark_event_processed(self, event_id: str) -> bool:
        key = (event_id or "").strip()
        if not key:
            return False
        with self._connect() as conn:
            try:
                conn.execute(
                    "INSERT INTO processed_updates (event_id, received_at) VALUES (?, ?)",
                    (key, _utc_now()),
                )
                conn.commit()
            except sqlite3.IntegrityError:
                return False
        return True

    def get_session(self, conversation_id: str) -> Session | None:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT conversation_id, state, pending_json, expires_at, created_at, updated_at
                FROM conversation_sessions
                WHERE conversation_id = ?
                """,
                (conversation_id,),
            ).fetchone()
        if row is None:
            return None
        expires_at = str(row["expires_at"] or "")
        if expires_at and expires_at <= _utc_now():
            return None
        state = _to_state(row["state"])
        if state is None:
            return None
        pending = _load_json(row["pending_json"])
        return Session(
            conversation_id=str(row["conversation_id"]),
            state=state,
            pending=pending if isinstance(pending, dict) else {},
            expires_at=expires_at,
            created_at=str(row["created_at"] or ""),
            updated_at=str(row["updated_at"] or ""),
        )

    def save_session(
        self,
        conversation_id: str,
        state: str,
        pending: dict[str, Any],
        expires_at: str,
    ) -> None:
        now = _utc_now()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO conversation_sessions (
                    conversation_id, state, pending_json, expires_at, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(conversation_id) DO UPDATE SET
                    state = excluded.state,
                    pending_json = excluded.pending_json,
                    expires_at = excluded.expires_at,
                    updated_at = excluded.updated_at
                """,
                (
                    conversation_id,
                    state,
                    json.dumps(pending, ensure_ascii=False),
                    expires_at,
                    now,
                    now,
                ),
            )
            conn.commit()

    def delete_session(self, conversation_id: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM conversation_sessions WHERE conversation_id = ?", (conversation_id,))
            conn.commit()

    def reserve_pin(self, pin: str, owner_id: str) -> bool:
        with self._connect() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO file_records (pin, status, owner_id, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (pin, FileRecordStatus.RESERVED, owner_id, _utc_now()),
                )
                conn.commit()
            except sqlite3.IntegrityError:
                return False
        return True

    def complete_file_record(self, record: FileRecord) -> FileRecord | None:
        uploaded_at = _utc_now()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE file_records
                SET status = ?,
                    remote_file_ref = ?,
                    display_name = ?,
                    mime_type = ?,
                    size_bytes = ?,
                    uploaded_at = ?
                WHERE pin = ? AND status = ? AND owner_id = ?
                """,
                (
                    FileRecordStatus.READY,
                    record.remote_file_ref,
                    record.display_name,
                    record.mime_type,
                    int(record.size_bytes),
                    uploaded_at,
                    record.pin,
                    FileRecordStatus.RESERVED,
                    record.owner_id,
                ),
            )
            conn.commit()
            if cursor.rowcount != 1:
                return None
        return FileRecord(
            pin=record.pin,
            remote_file_ref=record.remote_file_ref,
            display_name=record.display_name,
            mime_type=record.mime_type,
            size_bytes=int(record.size_bytes),
            owner_id=record.owner_id,
            uploaded_at=uploaded_at,
            status=FileRecordStatus.READY,
        )

    def release_pin(self, pin: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM file_records WHERE pin = ? AND status = ?",
                (pin, FileRecordStatus.RESERVED),
            )
            conn.commit()

    def get_file_record(self, pin: str) -> FileRecord | None:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT pin, status, remote_file_ref, display_name, mime_type, size_bytes, owner_id, uploaded_at
                FROM file_records
                WHERE pin = ?
                """,
                (pin,),
            ).fetchone()
        if row is None:
            return None
        return FileRecord(
            pin=str(row["pin"]),
            remote_file_ref=str(row["remote_file_ref"] or ""),
            display_name=str(row["display_name"] or ""),
            mime_type=str(row["mime_type"] or ""),
            size_bytes=int(row["size_bytes"] or 0),
            owner_id=str(row["owner_id"] or ""),
            uploaded_at=str(row["uploaded_at"] or ""),
            status=str(row["status"] or ""),
        )


def _to_state(value: Any) -> ConversationState | None:
    try:
        return ConversationState(str(value))
    except ValueError:
        return None


def _load_json(text: str | None) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except Exception:
        return None

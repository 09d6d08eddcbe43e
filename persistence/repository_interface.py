from __future__ import annotations

from typing import Any, Protocol

from core.models import FileRecord, Session


class SessionRepositoryProtocol(Protocol):
    def get_session(self, conversation_id: str) -> Session | None: ...

    def save_session(
        self,
        conversation_id: str,
        state: str,
        pending: dict[str, Any],
        expires_at: str,
    ) -> None: ...

    def delete_session(self, conversation_id: str) -> None: ...


class FileRecordRepositoryProtocol(Protocol):
    def reserve_pin(self, pin: str, owner_id: str) -> bool: ...

    def complete_file_record(self, record: FileRecord) -> FileRecord | None: ...

    def release_pin(self, pin: str) -> None: ...

    def get_file_record(self, pin: str) -> FileRecord | None: ...


class BotRepositoryProtocol(SessionRepositoryProtocol, FileRecordRepositoryProtocol, Protocol):
    def mark_event_processed(self, event_id: str) -> bool: ...

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from core.enums import ConversationState
from core.models import Session
from persistence.repository_interface import SessionRepositoryProtocol

_STORE_READ_ERRORS = (sqlite3.Error, ClientError, BotoCoreError)


class SessionStore:
    """Per-conversation state and pending values backed by the repository.

    The repository is the source of truth. The in-process map is written
    through on every change and only read when the repository cannot be
    reached, so a warm process can still finish a flow it started.
    """

    def __init__(
        self,
        repository: SessionRepositoryProtocol,
        session_ttl_minutes: int = 60,
        cache_enabled: bool = True,
    ) -> None:
        self.repository = repository
        self.session_ttl_minutes = max(1, int(session_ttl_minutes))
        self.cache_enabled = bool(cache_enabled)
        self._cache: dict[str, Session] = {}

    def get(self, conversation_id: str) -> Session:
        try:
            session = self.repository.get_session(conversation_id)
        except _STORE_READ_ERRORS as exc:
            print(f"session-store-read-failed conversation_id={conversation_id} error={exc}")
            cached = self._cache.get(conversation_id) if self.cache_enabled else None
            if cached is None or _is_expired(cached.expires_at):
                return Session.initial(conversation_id)
            return _copy(cached)
        if session is None:
            self._cache.pop(conversation_id, None)
            return Session.initial(conversation_id)
        self._remember(session)
        return session

    def set(
        self,
        conversation_id: str,
        state: ConversationState,
        pending_patch: dict[str, Any] | None = None,
        *,
        replace_pending: bool = False,
    ) -> Session:
        if state == ConversationState.NONE:
            self.clear(conversation_id)
            return Session.initial(conversation_id)

        current = {} if replace_pending else dict(self.get(conversation_id).pending)
        for key, value in (pending_patch or {}).items():
            if value is None:
                current.pop(key, None)
            else:
                current[key] = value

        expires_at = self._expires_at()
        self.repository.save_session(
            conversation_id=conversation_id,
            state=state.value,
            pending=current,
            expires_at=expires_at,
        )
        session = Session(
            conversation_id=conversation_id,
            state=state,
            pending=current,
            expires_at=expires_at,
        )
        self._remember(session)
        return session

    def clear(self, conversation_id: str) -> None:
        self._cache.pop(conversation_id, None)
        self.repository.delete_session(conversation_id)

    def _remember(self, session: Session) -> None:
        if self.cache_enabled:
            self._cache[session.conversation_id] = _copy(session)

    def _expires_at(self) -> str:
        deadline = datetime.now(timezone.utc) + timedelta(minutes=self.session_ttl_minutes)
        return deadline.isoformat()


def _copy(session: Session) -> Session:
    return Session(
        conversation_id=session.conversation_id,
        state=session.state,
        pending=dict(session.pending),
        expires_at=session.expires_at,
        created_at=session.created_at,
        updated_at=session.updated_at,
    )


def _is_expired(expires_at: str) -> bool:
    return bool(expires_at) and expires_at <= datetime.now(timezone.utc).isoformat()

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from core.enums import AttachmentKind, ConversationState, EventKind


@dataclass(slots=True)
class Session:
    conversation_id: str
    state: ConversationState = ConversationState.NONE
    pending: dict[str, Any] = field(default_factory=dict)
    expires_at: str = ""
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def initial(cls, conversation_id: str) -> "Session":
        return cls(conversation_id=conversation_id)

    @property
    def is_idle(self) -> bool:
        return self.state == ConversationState.NONE


@dataclass(slots=True)
class Attachment:
    kind: AttachmentKind
    remote_file_ref: str
    display_name: str
    mime_type: str
    size_bytes: int = 0
    unique_ref: str = ""


@dataclass(slots=True)
class FileRecord:
    pin: str
    remote_file_ref: str
    display_name: str
    mime_type: str
    size_bytes: int
    owner_id: str
    uploaded_at: str = ""
    status: str = "ready"


@dataclass(slots=True)
class InboundEvent:
    conversation_id: str
    user_id: str
    text: str = ""
    attachment: Attachment | None = None
    event_id: str = ""

    @property
    def kind(self) -> EventKind:
        if self.text.startswith("/"):
            return EventKind.COMMAND
        if self.attachment is not None:
            return EventKind.ATTACHMENT
        if self.text.strip():
            return EventKind.TEXT
        return EventKind.OTHER

    @property
    def command(self) -> str:
        if self.kind != EventKind.COMMAND:
            return ""
        token = self.text.split()[0]
        # "/start@SomeBot" in group chats
        return token.split("@", 1)[0]


@dataclass(slots=True)
class FetchedFile:
    content: bytes
    filename: str
    size_bytes: int
    content_type: str | None = None

from __future__ import annotations

from typing import Any

from core.enums import AttachmentKind
from core.models import Attachment, InboundEvent
from tgbot.event_ids import build_update_event_id

DEFAULT_UPLOAD_NAME = "uploaded_file"
DEFAULT_MIME_TYPE = "application/octet-stream"


def parse_update(update: dict[str, Any]) -> InboundEvent | None:
    message = update.get("message")
    if not isinstance(message, dict):
        return None
    chat = message.get("chat") or {}
    chat_id = str(chat.get("id", "") or "").strip()
    if not chat_id:
        return None
    sender = message.get("from") or {}
    user_id = str(sender.get("id", "") or "").strip() or chat_id
    text = message.get("text")
    return InboundEvent(
        conversation_id=chat_id,
        user_id=user_id,
        text=text if isinstance(text, str) else "",
        attachment=extract_attachment(message),
        event_id=build_update_event_id(update),
    )


def extract_attachment(message: dict[str, Any]) -> Attachment | None:
    for kind in (AttachmentKind.DOCUMENT, AttachmentKind.VIDEO, AttachmentKind.AUDIO):
        payload = message.get(kind.value)
        if isinstance(payload, dict) and payload.get("file_id"):
            return Attachment(
                kind=kind,
                remote_file_ref=str(payload["file_id"]),
                display_name=str(payload.get("file_name") or DEFAULT_UPLOAD_NAME),
                mime_type=str(payload.get("mime_type") or DEFAULT_MIME_TYPE),
                size_bytes=_to_size(payload.get("file_size")),
                unique_ref=str(payload.get("file_unique_id") or ""),
            )

    photo = _largest_photo(message.get("photo"))
    if photo is not None:
        unique_ref = str(photo.get("file_unique_id") or "")
        return Attachment(
            kind=AttachmentKind.PHOTO,
            remote_file_ref=str(photo["file_id"]),
            display_name=f"photo_{unique_ref or photo['file_id']}.jpg",
            mime_type="image/jpeg",
            size_bytes=_to_size(photo.get("file_size")),
            unique_ref=unique_ref,
        )
    return None


def _largest_photo(value: Any) -> dict[str, Any] | None:
    if not isinstance(value, list):
        return None
    variants = [item for item in value if isinstance(item, dict) and item.get("file_id")]
    if not variants:
        return None
    # Telegram lists sizes ascending; file_size can be missing on some variants
    return max(
        enumerate(variants),
        key=lambda pair: (_to_size(pair[1].get("file_size")), int(pair[1].get("width") or 0), pair[0]),
    )[1]


def _to_size(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(0, value)
    try:
        return max(0, int(str(value)))
    except (TypeError, ValueError):
        return 0

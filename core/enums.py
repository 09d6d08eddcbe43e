from __future__ import annotations

from enum import Enum


class ConversationState(str, Enum):
    NONE = "NONE"
    ASK_NUMBER = "ASK_NUMBER"
    ASK_MESSAGE = "ASK_MESSAGE"
    ASK_DOWNLOAD_URL = "ASK_DOWNLOAD_URL"
    WAIT_UPLOAD_FILE = "WAIT_UPLOAD_FILE"
    ASK_PIN = "ASK_PIN"
    ASK_AI_QUERY = "ASK_AI_QUERY"
    ASK_YT_URL = "ASK_YT_URL"


class EventKind(str, Enum):
    COMMAND = "command"
    TEXT = "text"
    ATTACHMENT = "attachment"
    OTHER = "other"


class AttachmentKind(str, Enum):
    DOCUMENT = "document"
    VIDEO = "video"
    AUDIO = "audio"
    PHOTO = "photo"


class FileRecordStatus:
    RESERVED = "reserved"
    READY = "ready"


class Command:
    START = "/start"
    SENDMSG = "/sendmsg"
    YT_DOWNLOAD = "/yt_download"
    DOWNLOAD_URL = "/download_url"
    UPLOAD_FILE = "/upload_file"
    GET_FILE = "/get_file"
    ASK_AI = "/ask_ai"
    CANCEL = "/cancel"

    ALL = (
        START,
        SENDMSG,
        YT_DOWNLOAD,
        DOWNLOAD_URL,
        UPLOAD_FILE,
        GET_FILE,
        ASK_AI,
        CANCEL,
    )


MAX_TRANSFER_BYTES = 50 * 1024 * 1024

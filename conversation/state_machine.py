from __future__ import annotations

from core.enums import Command, ConversationState, EventKind

NONE = ConversationState.NONE
ASK_NUMBER = ConversationState.ASK_NUMBER
ASK_MESSAGE = ConversationState.ASK_MESSAGE
ASK_DOWNLOAD_URL = ConversationState.ASK_DOWNLOAD_URL
WAIT_UPLOAD_FILE = ConversationState.WAIT_UPLOAD_FILE
ASK_PIN = ConversationState.ASK_PIN
ASK_AI_QUERY = ConversationState.ASK_AI_QUERY
ASK_YT_URL = ConversationState.ASK_YT_URL

# Commands win over any pending question and act as resets.
COMMAND_TARGETS: dict[str, ConversationState] = {
    Command.START: NONE,
    Command.CANCEL: NONE,
    Command.YT_DOWNLOAD: NONE,
    Command.SENDMSG: ASK_NUMBER,
    Command.DOWNLOAD_URL: ASK_DOWNLOAD_URL,
    Command.UPLOAD_FILE: WAIT_UPLOAD_FILE,
    Command.GET_FILE: ASK_PIN,
    Command.ASK_AI: ASK_AI_QUERY,
}

COMMAND_ACTIONS: dict[str, str] = {
    Command.START: "command_start",
    Command.CANCEL: "command_cancel",
    Command.YT_DOWNLOAD: "command_yt_download",
    Command.SENDMSG: "command_sendmsg",
    Command.DOWNLOAD_URL: "command_download_url",
    Command.UPLOAD_FILE: "command_upload_file",
    Command.GET_FILE: "command_get_file",
    Command.ASK_AI: "command_ask_ai",
}

UNRECOGNIZED_COMMAND_ACTION = "command_unrecognized"

ANSWER_EVENT_KINDS = (EventKind.TEXT, EventKind.ATTACHMENT, EventKind.OTHER)

TRANSITIONS: dict[tuple[ConversationState, EventKind], str] = {
    (NONE, EventKind.TEXT): "reply_unknown",
    (NONE, EventKind.ATTACHMENT): "reply_attachment_hint",
    (NONE, EventKind.OTHER): "reply_unknown",
    (ASK_NUMBER, EventKind.TEXT): "answer_number",
    (ASK_NUMBER, EventKind.ATTACHMENT): "reprompt_number",
    (ASK_NUMBER, EventKind.OTHER): "reprompt_number",
    (ASK_MESSAGE, EventKind.TEXT): "answer_message",
    (ASK_MESSAGE, EventKind.ATTACHMENT): "reprompt_message",
    (ASK_MESSAGE, EventKind.OTHER): "reprompt_message",
    (ASK_DOWNLOAD_URL, EventKind.TEXT): "answer_download_url",
    (ASK_DOWNLOAD_URL, EventKind.ATTACHMENT): "reprompt_download_url",
    (ASK_DOWNLOAD_URL, EventKind.OTHER): "reprompt_download_url",
    (WAIT_UPLOAD_FILE, EventKind.TEXT): "reprompt_upload",
    (WAIT_UPLOAD_FILE, EventKind.ATTACHMENT): "answer_upload",
    (WAIT_UPLOAD_FILE, EventKind.OTHER): "reprompt_upload",
    (ASK_PIN, EventKind.TEXT): "answer_pin",
    (ASK_PIN, EventKind.ATTACHMENT): "reprompt_pin",
    (ASK_PIN, EventKind.OTHER): "reprompt_pin",
    (ASK_AI_QUERY, EventKind.TEXT): "answer_ai_query",
    (ASK_AI_QUERY, EventKind.ATTACHMENT): "reprompt_ai_query",
    (ASK_AI_QUERY, EventKind.OTHER): "reprompt_ai_query",
    (ASK_YT_URL, EventKind.TEXT): "reply_yt_unavailable",
    (ASK_YT_URL, EventKind.ATTACHMENT): "reply_yt_unavailable",
    (ASK_YT_URL, EventKind.OTHER): "reply_yt_unavailable",
}

# Non-command moves out of each state besides staying put or ending the flow.
ANSWER_TRANSITIONS: dict[ConversationState, set[ConversationState]] = {
    ASK_NUMBER: {ASK_MESSAGE},
}


def action_for(state: ConversationState, kind: EventKind) -> str:
    return TRANSITIONS[(state, kind)]


def command_action_for(command: str) -> str:
    return COMMAND_ACTIONS.get(command, UNRECOGNIZED_COMMAND_ACTION)


def can_transition(current: ConversationState, target: ConversationState) -> bool:
    if target in (current, NONE):
        return True
    return target in ANSWER_TRANSITIONS.get(current, set())

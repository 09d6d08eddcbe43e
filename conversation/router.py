from __future__ import annotations

import re
from typing import Any, Callable

from capabilities.base import CompletionCapability, FetchCapability, RelayCapability
from capabilities.fetch import UrlFetcher
from conversation import state_machine
from conversation.session_store import SessionStore
from core.enums import MAX_TRANSFER_BYTES, ConversationState, EventKind
from core.errors import (
    CapabilityUnavailable,
    DownstreamFailure,
    OversizedInput,
    PinNotFound,
    RegistryExhausted,
    ValidationError,
)
from core.models import InboundEvent, Session
from fileshare.file_exchange_service import FileExchangeService
from fileshare.pin_registry import normalize_pin
from tgbot import message_templates

PHONE_NUMBER_RE = re.compile(r"^\d{10,}$")
URL_PREFIXES = ("http://", "https://")

Messages = list[dict[str, Any]]


class ConversationRouter:
    def __init__(
        self,
        sessions: SessionStore,
        file_exchange: FileExchangeService,
        relay: RelayCapability | None = None,
        ai: CompletionCapability | None = None,
        fetcher: FetchCapability | None = None,
        max_transfer_bytes: int = MAX_TRANSFER_BYTES,
    ) -> None:
        self.sessions = sessions
        self.file_exchange = file_exchange
        self.relay = relay
        self.ai = ai
        self.max_transfer_bytes = int(max_transfer_bytes)
        self.fetcher = fetcher or UrlFetcher(max_bytes=self.max_transfer_bytes)

    def handle(self, event: InboundEvent) -> Messages:
        session = self.sessions.get(event.conversation_id)
        kind = event.kind
        if kind == EventKind.COMMAND:
            action = state_machine.command_action_for(event.command)
        else:
            action = state_machine.action_for(session.state, kind)
        print(
            f"router-event conversation_id={event.conversation_id} state={session.state.value} "
            f"kind={kind.value} action={action}"
        )
        handler: Callable[[InboundEvent, Session], Messages] = getattr(self, f"_{action}")
        try:
            return handler(event, session)
        except Exception as exc:  # noqa: BLE001
            print(
                f"router-unexpected-error conversation_id={event.conversation_id} "
                f"action={action} error={exc!r}"
            )
            self._end_quietly(event.conversation_id)
            return message_templates.build_generic_failure_message()

    # commands

    def _command_start(self, event: InboundEvent, session: Session) -> Messages:
        self._end(event)
        return message_templates.build_help_message()

    def _command_cancel(self, event: InboundEvent, session: Session) -> Messages:
        self._end(event)
        return message_templates.build_cancelled_message()

    def _command_yt_download(self, event: InboundEvent, session: Session) -> Messages:
        self._end(event)
        return message_templates.build_yt_unavailable_message()

    def _command_unrecognized(self, event: InboundEvent, session: Session) -> Messages:
        self._end(event)
        return message_templates.build_unrecognized_command_message()

    def _command_sendmsg(self, event: InboundEvent, session: Session) -> Messages:
        self._enter(session, ConversationState.ASK_NUMBER)
        return message_templates.build_ask_number_message()

    def _command_download_url(self, event: InboundEvent, session: Session) -> Messages:
        self._enter(session, ConversationState.ASK_DOWNLOAD_URL)
        return message_templates.build_ask_url_message()

    def _command_upload_file(self, event: InboundEvent, session: Session) -> Messages:
        if not self.file_exchange.available:
            self._end(event)
            return message_templates.build_upload_unavailable_message()
        self._enter(session, ConversationState.WAIT_UPLOAD_FILE)
        return message_templates.build_ask_upload_message()

    def _command_get_file(self, event: InboundEvent, session: Session) -> Messages:
        if not self.file_exchange.available:
            self._end(event)
            return message_templates.build_file_download_unavailable_message()
        self._enter(session, ConversationState.ASK_PIN)
        return message_templates.build_ask_pin_message()

    def _command_ask_ai(self, event: InboundEvent, session: Session) -> Messages:
        if not self._ai_available():
            self._end(event)
            return message_templates.build_ai_unavailable_message()
        self._enter(session, ConversationState.ASK_AI_QUERY)
        return message_templates.build_ask_ai_message()

    # idle replies

    def _reply_unknown(self, event: InboundEvent, session: Session) -> Messages:
        if event.text:
            print(f"router-unhandled-text conversation_id={event.conversation_id} text={event.text[:100]!r}")
        return message_templates.build_unknown_message()

    def _reply_attachment_hint(self, event: InboundEvent, session: Session) -> Messages:
        return message_templates.build_attachment_without_command_message()

    def _reply_yt_unavailable(self, event: InboundEvent, session: Session) -> Messages:
        self._end(event)
        return message_templates.build_yt_unavailable_message()

    # answers

    def _answer_number(self, event: InboundEvent, session: Session) -> Messages:
        try:
            number = parse_phone_number(event.text)
        except ValidationError:
            return message_templates.build_invalid_number_message()
        self._advance(session, ConversationState.ASK_MESSAGE, {"number": number})
        return message_templates.build_ask_message_message()

    def _reprompt_number(self, event: InboundEvent, session: Session) -> Messages:
        return message_templates.build_invalid_number_message()

    def _answer_message(self, event: InboundEvent, session: Session) -> Messages:
        number = str(session.pending.get("number", "") or "")
        self._end(event)
        if not number:
            return message_templates.build_generic_failure_message()
        if self.relay is None or not self.relay.available:
            return message_templates.build_relay_unavailable_message()
        sent = self.relay.relay(number, event.text)
        return message_templates.build_relay_result_message(sent)

    def _reprompt_message(self, event: InboundEvent, session: Session) -> Messages:
        return message_templates.build_message_reprompt_message()

    def _answer_download_url(self, event: InboundEvent, session: Session) -> Messages:
        try:
            url = parse_download_url(event.text)
        except ValidationError:
            return message_templates.build_invalid_url_message()
        self._end(event)
        return message_templates.build_downloading_message() + self._download(url)

    def _download(self, url: str) -> Messages:
        try:
            fetched = self.fetcher.fetch(url)
        except OversizedInput as exc:
            print(f"url-fetch-oversized url={url} size_bytes={exc.size_bytes}")
            return message_templates.build_download_oversized_message(exc.size_bytes)
        except DownstreamFailure as exc:
            print(f"url-fetch-failed url={url} error={exc}")
            return message_templates.build_download_failed_message(str(exc))
        if fetched.size_bytes > self.max_transfer_bytes:
            return message_templates.build_download_oversized_message(fetched.size_bytes)
        return message_templates.build_download_sent_messages(fetched)

    def _reprompt_download_url(self, event: InboundEvent, session: Session) -> Messages:
        return message_templates.build_invalid_url_message()

    def _answer_upload(self, event: InboundEvent, session: Session) -> Messages:
        attachment = event.attachment
        if attachment is None:
            return message_templates.build_upload_reprompt_message()
        self._end(event)
        try:
            pin = self.file_exchange.bind(attachment, event.user_id)
        except OversizedInput as exc:
            return message_templates.build_upload_oversized_message(exc.size_bytes)
        except RegistryExhausted as exc:
            print(f"pin-registry-exhausted attempts={exc.attempts} owner_id={event.user_id}")
            return message_templates.build_upload_failed_message()
        except CapabilityUnavailable as exc:
            print(f"file-store-unavailable owner_id={event.user_id} error={exc}")
            return message_templates.build_upload_unavailable_message()
        return message_templates.build_upload_success_message(pin)

    def _reprompt_upload(self, event: InboundEvent, session: Session) -> Messages:
        return message_templates.build_upload_reprompt_message()

    def _answer_pin(self, event: InboundEvent, session: Session) -> Messages:
        pin = normalize_pin(event.text)
        self._end(event)
        registry = self.file_exchange.registry
        if registry is not None and not registry.is_well_formed(pin):
            print(f"pin-invalid-format conversation_id={event.conversation_id} pin={pin!r}")
            return message_templates.build_invalid_pin_message()
        return message_templates.build_looking_up_pin_message(pin) + self._resend(pin)

    def _resend(self, pin: str) -> Messages:
        try:
            record = self.file_exchange.resolve(pin)
        except PinNotFound:
            print(f"pin-not-found pin={pin}")
            return message_templates.build_invalid_pin_message()
        except OversizedInput as exc:
            print(f"pin-file-oversized pin={pin} size_bytes={exc.size_bytes}")
            return message_templates.build_file_oversized_message(exc.size_bytes)
        except CapabilityUnavailable as exc:
            print(f"file-store-unavailable pin={pin} error={exc}")
            return message_templates.build_lookup_failed_message()
        return message_templates.build_file_resend_messages(record)

    def _reprompt_pin(self, event: InboundEvent, session: Session) -> Messages:
        return message_templates.build_pin_reprompt_message()

    def _answer_ai_query(self, event: InboundEvent, session: Session) -> Messages:
        self._end(event)
        if self.ai is None or not self._ai_available():
            return message_templates.build_ai_unavailable_message()
        try:
            answer = self.ai.complete(event.text)
        except CapabilityUnavailable:
            return message_templates.build_ai_unavailable_message()
        except DownstreamFailure as exc:
            print(f"ai-completion-failed conversation_id={event.conversation_id} error={exc}")
            return message_templates.build_ai_failed_message()
        return message_templates.build_ai_response_messages(answer)

    def _reprompt_ai_query(self, event: InboundEvent, session: Session) -> Messages:
        return message_templates.build_ask_ai_message()

    # session helpers

    def _enter(self, session: Session, target: ConversationState) -> None:
        # commands reset whatever question was pending
        self.sessions.set(session.conversation_id, target, replace_pending=True)

    def _advance(self, session: Session, target: ConversationState, pending_patch: dict[str, Any]) -> None:
        if not state_machine.can_transition(session.state, target):
            raise RuntimeError(f"illegal transition {session.state.value} -> {target.value}")
        self.sessions.set(session.conversation_id, target, pending_patch)

    def _end(self, event: InboundEvent) -> None:
        self.sessions.clear(event.conversation_id)

    def _end_quietly(self, conversation_id: str) -> None:
        try:
            self.sessions.clear(conversation_id)
        except Exception as exc:  # noqa: BLE001
            print(f"session-clear-failed conversation_id={conversation_id} error={exc}")

    def _ai_available(self) -> bool:
        return self.ai is not None and bool(self.ai.available)


def parse_phone_number(text: str) -> str:
    number = (text or "").strip()
    if not PHONE_NUMBER_RE.fullmatch(number):
        raise ValidationError(f"not a phone number: {number[:32]!r}")
    return number


def parse_download_url(text: str) -> str:
    url = (text or "").strip()
    if not url.startswith(URL_PREFIXES):
        raise ValidationError(f"not an http(s) url: {url[:64]!r}")
    return url

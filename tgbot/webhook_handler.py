from __future__ import annotations

import json
from typing import Any

from capabilities.ai import create_completion_client
from capabilities.base import CompletionCapability, FetchCapability, RelayCapability
from capabilities.fetch import create_url_fetcher
from capabilities.relay import create_relay_client
from conversation.router import ConversationRouter
from conversation.session_store import SessionStore
from core.enums import MAX_TRANSFER_BYTES
from fileshare.file_exchange_service import FileExchangeService
from fileshare.pin_registry import PinRegistry
from persistence.repository_factory import create_bot_repository
from persistence.repository_interface import BotRepositoryProtocol
from tgbot.bot_client import TelegramBotClient
from tgbot.signature import verify_webhook_secret
from tgbot.updates import parse_update

_UNSET: Any = object()


class TelegramWebhookHandler:
    def __init__(
        self,
        config: dict[str, Any],
        bot_client: TelegramBotClient | None = None,
        repository: BotRepositoryProtocol | None = None,
        relay: RelayCapability | None = None,
        ai: CompletionCapability | None = _UNSET,
        fetcher: FetchCapability | None = None,
    ) -> None:
        self.config = config
        self.telegram_conf = config.get("telegram", {})
        self.conversation_conf = config.get("conversation", {})
        self.file_conf = config.get("file_exchange", {})
        self.enabled = bool(self.telegram_conf.get("enabled", True))
        self.webhook_secret = str(self.telegram_conf.get("webhook_secret", "") or "").strip()

        self.repository = repository or create_bot_repository(config)
        self.sessions = SessionStore(
            repository=self.repository,
            session_ttl_minutes=int(self.conversation_conf.get("session_ttl_minutes", 60)),
            cache_enabled=bool(self.conversation_conf.get("cache_sessions", True)),
        )
        max_file_bytes = int(self.file_conf.get("max_file_bytes", MAX_TRANSFER_BYTES))
        file_store = self.repository if bool(self.file_conf.get("enabled", True)) else None
        registry = None
        if file_store is not None:
            registry = PinRegistry(
                file_store,
                length=int(self.file_conf.get("pin_length", 6)),
                max_attempts=int(self.file_conf.get("pin_max_attempts", 10)),
            )
        self.file_exchange = FileExchangeService(file_store, registry=registry, max_file_bytes=max_file_bytes)
        self.router = ConversationRouter(
            sessions=self.sessions,
            file_exchange=self.file_exchange,
            relay=relay or create_relay_client(config),
            ai=create_completion_client(config) if ai is _UNSET else ai,
            fetcher=fetcher or create_url_fetcher(config),
            max_transfer_bytes=max_file_bytes,
        )
        self.bot_client = bot_client or TelegramBotClient(
            bot_token=str(self.telegram_conf.get("bot_token", "") or ""),
            api_base_url=str(self.telegram_conf.get("api_base_url", "https://api.telegram.org")),
            timeout_sec=float(self.telegram_conf.get("timeout_sec", 20)),
        )

    def handle(self, body: bytes, secret_token: str | None) -> tuple[int, dict[str, Any]]:
        if not self.enabled:
            return 503, {"ok": False, "error": "telegram.enabled is false"}
        if not verify_webhook_secret(self.webhook_secret, secret_token):
            return 401, {"ok": False, "error": "invalid secret token"}

        try:
            update = json.loads(body.decode("utf-8"))
        except Exception:
            return 400, {"ok": False, "error": "invalid json payload"}
        if not isinstance(update, dict):
            return 400, {"ok": False, "error": "update must be an object"}

        event = parse_update(update)
        if event is None:
            return 200, {"ok": True, "handled": 0, "skipped": 1, "errors": []}
        if event.event_id and not self.repository.mark_event_processed(event.event_id):
            print(f"update-duplicate event_id={event.event_id}")
            return 200, {"ok": True, "handled": 0, "skipped": 1, "errors": []}

        errors: list[str] = []
        try:
            messages = self.router.handle(event)
            self.bot_client.deliver(event.conversation_id, messages)
        except Exception as exc:  # noqa: BLE001
            print(f"update-failed event_id={event.event_id} error={exc}")
            errors.append(str(exc))
        return 200, {"ok": not errors, "handled": 0 if errors else 1, "skipped": 0, "errors": errors}

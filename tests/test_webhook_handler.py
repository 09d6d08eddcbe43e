from __future__ import annotations

import base64
import json
import tempfile
import unittest
from pathlib import Path
from typing import Any
from unittest import mock

from app.lambda_handlers import webhook_handler as lambda_entry
from persistence.repository import SqliteBotRepository
from tgbot.webhook_handler import TelegramWebhookHandler


class _DummyBotClient:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[str, list[dict[str, Any]]]] = []

    def deliver(self, chat_id: str, messages: list[dict[str, Any]]) -> int:
        self.calls.append((chat_id, messages))
        if self.error is not None:
            raise self.error
        return len(messages)


class _DummyFetcher:
    def fetch(self, url: str) -> Any:
        raise AssertionError("no download expected")


def _build_config(tmp_dir: str, **telegram: Any) -> dict[str, Any]:
    telegram_conf = {
        "enabled": True,
        "bot_token": "123:abc",
        "webhook_secret": "s3cret",
        "webhook_path": "/webhook/telegram",
    }
    telegram_conf.update(telegram)
    return {
        "telegram": telegram_conf,
        "storage": {"backend": "sqlite", "sqlite_path": str(Path(tmp_dir) / "bot.db")},
        "conversation": {"session_ttl_minutes": 60},
        "file_exchange": {"enabled": True},
        "relay": {"api_url": None},
        "ai": {"enabled": False},
    }


def _body(update_id: int, text: str, chat_id: int = 100) -> bytes:
    update = {
        "update_id": update_id,
        "message": {
            "message_id": update_id,
            "chat": {"id": chat_id, "type": "private"},
            "from": {"id": 5},
            "text": text,
        },
    }
    return json.dumps(update).encode("utf-8")


def _build_handler(tmp_dir: str, bot_client: _DummyBotClient, **telegram: Any) -> TelegramWebhookHandler:
    config = _build_config(tmp_dir, **telegram)
    return TelegramWebhookHandler(
        config=config,
        bot_client=bot_client,
        repository=SqliteBotRepository(config["storage"]["sqlite_path"]),
        fetcher=_DummyFetcher(),
    )


class TelegramWebhookHandlerTest(unittest.TestCase):
    def test_invalid_secret_is_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            bot = _DummyBotClient()
            handler = _build_handler(tmp, bot)
            status, payload = handler.handle(body=_body(1, "/start"), secret_token="wrong")
            self.assertEqual(status, 401)
            self.assertFalse(payload["ok"])
            self.assertEqual(bot.calls, [])

    def test_invalid_json(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            handler = _build_handler(tmp, _DummyBotClient())
            status, _ = handler.handle(body=b"{not json", secret_token="s3cret")
            self.assertEqual(status, 400)
            status, _ = handler.handle(body=b"[1, 2]", secret_token="s3cret")
            self.assertEqual(status, 400)

    def test_disabled_bot(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            handler = _build_handler(tmp, _DummyBotClient(), enabled=False)
            status, _ = handler.handle(body=_body(1, "/start"), secret_token="s3cret")
            self.assertEqual(status, 503)

    def test_help_command_is_answered(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            bot = _DummyBotClient()
            handler = _build_handler(tmp, bot)
            status, payload = handler.handle(body=_body(1, "/start"), secret_token="s3cret")

            self.assertEqual(status, 200)
            self.assertEqual(payload["handled"], 1)
            self.assertEqual(len(bot.calls), 1)
            chat_id, messages = bot.calls[0]
            self.assertEqual(chat_id, "100")
            self.assertIn("/sendmsg", messages[0]["text"])

    def test_duplicate_update_is_skipped(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            bot = _DummyBotClient()
            handler = _build_handler(tmp, bot)
            handler.handle(body=_body(7, "/sendmsg"), secret_token="s3cret")
            status, payload = handler.handle(body=_body(7, "/sendmsg"), secret_token="s3cret")

            self.assertEqual(status, 200)
            self.assertEqual(payload["skipped"], 1)
            self.assertEqual(len(bot.calls), 1)

    def test_non_message_update_is_skipped(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            bot = _DummyBotClient()
            handler = _build_handler(tmp, bot)
            body = json.dumps({"update_id": 3, "callback_query": {"id": "x"}}).encode("utf-8")
            status, payload = handler.handle(body=body, secret_token="s3cret")
            self.assertEqual(status, 200)
            self.assertEqual(payload["skipped"], 1)
            self.assertEqual(bot.calls, [])

    def test_delivery_failure_still_acknowledges(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            bot = _DummyBotClient(error=RuntimeError("network down"))
            handler = _build_handler(tmp, bot)
            status, payload = handler.handle(body=_body(1, "/start"), secret_token="s3cret")
            self.assertEqual(status, 200)
            self.assertFalse(payload["ok"])
            self.assertEqual(payload["errors"], ["network down"])

    def test_pending_question_survives_between_updates(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            bot = _DummyBotClient()
            handler = _build_handler(tmp, bot)
            handler.handle(body=_body(1, "/sendmsg"), secret_token="s3cret")
            handler.handle(body=_body(2, "94712345678"), secret_token="s3cret")
            handler.handle(body=_body(3, "hello"), secret_token="s3cret")

            last_text = bot.calls[-1][1][0]["text"]
            self.assertIn("message service is unavailable", last_text)


class _DummyLambdaTarget:
    telegram_conf = {"webhook_path": "/webhook/telegram"}

    def __init__(self) -> None:
        self.calls: list[tuple[bytes, str | None]] = []

    def handle(self, body: bytes, secret_token: str | None) -> tuple[int, dict[str, Any]]:
        self.calls.append((body, secret_token))
        return 200, {"ok": True}


def _lambda_event(method: str, path: str, body: str = "", encoded: bool = False) -> dict[str, Any]:
    return {
        "rawPath": path,
        "requestContext": {"http": {"method": method}},
        "headers": {"X-Telegram-Bot-Api-Secret-Token": "s3cret"},
        "body": base64.b64encode(body.encode("utf-8")).decode("ascii") if encoded else body,
        "isBase64Encoded": encoded,
    }


class LambdaEntryTest(unittest.TestCase):
    def test_post_is_forwarded_with_secret_header(self) -> None:
        target = _DummyLambdaTarget()
        with mock.patch.object(lambda_entry, "_get_handler", return_value=target):
            response = lambda_entry.lambda_handler(
                _lambda_event("POST", "/webhook/telegram", '{"update_id": 1}', encoded=True),
                None,
            )
        self.assertEqual(response["statusCode"], 200)
        self.assertEqual(target.calls, [(b'{"update_id": 1}', "s3cret")])

    def test_other_methods_and_paths(self) -> None:
        target = _DummyLambdaTarget()
        with mock.patch.object(lambda_entry, "_get_handler", return_value=target):
            self.assertEqual(lambda_entry.lambda_handler(_lambda_event("GET", "/healthz"), None)["statusCode"], 200)
            self.assertEqual(lambda_entry.lambda_handler(_lambda_event("PUT", "/webhook/telegram"), None)["statusCode"], 405)
            self.assertEqual(lambda_entry.lambda_handler(_lambda_event("POST", "/other"), None)["statusCode"], 404)
        self.assertEqual(target.calls, [])


if __name__ == "__main__":
    unittest.main()

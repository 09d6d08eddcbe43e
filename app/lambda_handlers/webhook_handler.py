from __future__ import annotations

import base64
import json
from typing import Any

from app.config import load_runtime_config
from tgbot.webhook_handler import TelegramWebhookHandler

_handler: TelegramWebhookHandler | None = None


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    _ = context
    handler = _get_handler()

    method = str(event.get("requestContext", {}).get("http", {}).get("method", "")).upper()
    path = str(event.get("rawPath", ""))
    if method == "GET" and path.endswith("/healthz"):
        return _response(200, {"ok": True})
    if method != "POST":
        return _response(405, {"ok": False, "error": "method_not_allowed"})
    webhook_path = str(handler.telegram_conf.get("webhook_path", "") or "")
    if webhook_path and path and path != webhook_path:
        return _response(404, {"ok": False, "error": "not_found"})

    body_bytes = _decode_body(event)
    secret_token = _get_header(event.get("headers", {}), "x-telegram-bot-api-secret-token")
    status_code, payload = handler.handle(body=body_bytes, secret_token=secret_token)
    return _response(status_code, payload)


def _get_handler() -> TelegramWebhookHandler:
    global _handler
    if _handler is None:
        _handler = TelegramWebhookHandler(load_runtime_config())
    return _handler


def _decode_body(event: dict[str, Any]) -> bytes:
    body = event.get("body", "")
    if body is None:
        return b""
    if bool(event.get("isBase64Encoded", False)):
        return base64.b64decode(str(body))
    return str(body).encode("utf-8")


def _get_header(headers: Any, name: str) -> str | None:
    if not isinstance(headers, dict):
        return None
    needle = name.lower()
    for key, value in headers.items():
        if str(key).lower() == needle:
            return str(value)
    return None


def _response(status_code: int, payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {
            "content-type": "application/json; charset=utf-8",
        },
        "body": json.dumps(payload, ensure_ascii=False),
    }

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse

from app.config import load_runtime_config
from tgbot.webhook_handler import TelegramWebhookHandler

CONFIG = load_runtime_config()
HANDLER = TelegramWebhookHandler(CONFIG)

app = FastAPI(title="PIN Relay Telegram Webhook", version="0.1.0")
WEBHOOK_PATH = str(CONFIG.get("telegram", {}).get("webhook_path", "/webhook/telegram"))


@app.get("/healthz")
async def healthz() -> dict[str, Any]:
    return {"ok": True}


@app.post(WEBHOOK_PATH)
async def telegram_webhook(
    request: Request,
    x_telegram_bot_api_secret_token: str | None = Header(default=None),
) -> JSONResponse:
    body = await request.body()
    status_code, payload = HANDLER.handle(body=body, secret_token=x_telegram_bot_api_secret_token)
    return JSONResponse(status_code=status_code, content=payload)

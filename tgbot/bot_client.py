from __future__ import annotations

import json
import mimetypes
from typing import Any
from urllib import request
from uuid import uuid4

from capabilities.http import HttpJsonClient, UrllibHttpJsonClient, send_request
from core.errors import DownstreamFailure


class TelegramApiError(RuntimeError):
    pass


class TelegramBotClient:
    def __init__(
        self,
        bot_token: str,
        api_base_url: str = "https://api.telegram.org",
        timeout_sec: float = 20.0,
        http_client: HttpJsonClient | None = None,
    ) -> None:
        self.bot_token = (bot_token or "").strip()
        self.api_base_url = (api_base_url or "https://api.telegram.org").rstrip("/")
        self.timeout_sec = float(timeout_sec)
        self.http_client = http_client or UrllibHttpJsonClient()

    def send_message(self, chat_id: str, text: str) -> Any:
        return self._call("sendMessage", {"chat_id": chat_id, "text": text})

    def send_document(self, chat_id: str, file_id: str, caption: str = "") -> Any:
        payload: dict[str, Any] = {"chat_id": chat_id, "document": file_id}
        if caption:
            payload["caption"] = caption
        return self._call("sendDocument", payload)

    def upload_document(self, chat_id: str, filename: str, content: bytes, caption: str = "") -> Any:
        fields = {"chat_id": str(chat_id)}
        if caption:
            fields["caption"] = caption
        body, content_type = encode_multipart(fields, "document", filename, content)
        req = request.Request(url=self._method_url("sendDocument"), data=body, method="POST")
        req.add_header("Content-Type", content_type)
        try:
            status, response = send_request(req, self.timeout_sec)
        except DownstreamFailure as exc:
            raise TelegramApiError(f"telegram sendDocument upload failed: {exc}") from exc
        return self._unwrap("sendDocument", status, response)

    def set_webhook(self, url: str, secret_token: str = "", drop_pending_updates: bool = False) -> Any:
        payload: dict[str, Any] = {
            "url": url,
            "allowed_updates": ["message"],
            "drop_pending_updates": bool(drop_pending_updates),
        }
        if secret_token:
            payload["secret_token"] = secret_token
        return self._call("setWebhook", payload)

    def delete_webhook(self, drop_pending_updates: bool = False) -> Any:
        return self._call("deleteWebhook", {"drop_pending_updates": bool(drop_pending_updates)})

    def get_webhook_info(self) -> Any:
        return self._call("getWebhookInfo", {})

    def deliver(self, chat_id: str, messages: list[dict[str, Any]]) -> int:
        """Send router output in order; returns the number of messages delivered.

        A failed file send is reported to the chat with the message's
        ``failure_text`` and ends the batch, so no success confirmation
        follows it.
        """
        delivered = 0
        for message in messages:
            kind = str(message.get("type", "") or "")
            try:
                if kind == "text":
                    self.send_message(chat_id, str(message.get("text", "")))
                elif kind == "document":
                    self.send_document(chat_id, str(message["file_id"]), str(message.get("caption", "")))
                elif kind == "upload":
                    self.upload_document(
                        chat_id,
                        str(message.get("filename") or "downloaded_file"),
                        bytes(message.get("content") or b""),
                        str(message.get("caption", "")),
                    )
                else:
                    print(f"telegram-send-skipped chat_id={chat_id} type={kind}")
                    continue
                delivered += 1
            except TelegramApiError as exc:
                print(f"telegram-send-failed chat_id={chat_id} type={kind} error={exc}")
                failure_text = str(message.get("failure_text", "") or "")
                if kind in {"document", "upload"} and failure_text:
                    self._send_quietly(chat_id, failure_text)
                    break
        return delivered

    def _send_quietly(self, chat_id: str, text: str) -> None:
        try:
            self.send_message(chat_id, text)
        except TelegramApiError as exc:
            print(f"telegram-send-failed chat_id={chat_id} type=text error={exc}")

    def _call(self, method: str, payload: dict[str, Any]) -> Any:
        if not self.bot_token:
            raise TelegramApiError("telegram.bot_token is required")
        try:
            status, response = self.http_client.post_json(
                self._method_url(method),
                payload,
                timeout_sec=self.timeout_sec,
            )
        except DownstreamFailure as exc:
            raise TelegramApiError(f"telegram {method} failed: {exc}") from exc
        return self._unwrap(method, status, response)

    def _method_url(self, method: str) -> str:
        return f"{self.api_base_url}/bot{self.bot_token}/{method}"

    @staticmethod
    def _unwrap(method: str, status: int, response: Any) -> Any:
        if status >= 400 or not isinstance(response, dict) or not response.get("ok"):
            description = response.get("description") if isinstance(response, dict) else response
            raise TelegramApiError(f"telegram {method} error: status={status} description={description}")
        return response.get("result")


def encode_multipart(
    fields: dict[str, str],
    file_field: str,
    filename: str,
    content: bytes,
) -> tuple[bytes, str]:
    boundary = uuid4().hex
    safe_name = json.dumps(filename, ensure_ascii=False)[1:-1]
    file_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    parts: list[bytes] = []
    for name, value in fields.items():
        parts.append(
            (
                f"--{boundary}\r\n"
                f'Content-Disposition: form-data; name="{name}"\r\n\r\n'
                f"{value}\r\n"
            ).encode("utf-8")
        )
    parts.append(
        (
            f"--{boundary}\r\n"
            f'Content-Disposition: form-data; name="{file_field}"; filename="{safe_name}"\r\n'
            f"Content-Type: {file_type}\r\n\r\n"
        ).encode("utf-8")
    )
    parts.append(content)
    parts.append(f"\r\n--{boundary}--\r\n".encode("utf-8"))
    return b"".join(parts), f"multipart/form-data; boundary={boundary}"

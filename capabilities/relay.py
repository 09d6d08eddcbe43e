from __future__ import annotations

from typing import Any

from capabilities.http import HttpJsonClient, UrllibHttpJsonClient
from core.errors import DownstreamFailure


class RelayApiClient:
    def __init__(
        self,
        api_url: str | None,
        timeout_sec: float = 20.0,
        http_client: HttpJsonClient | None = None,
    ) -> None:
        self.api_url = (api_url or "").strip()
        self.timeout_sec = float(timeout_sec)
        self.http_client = http_client or UrllibHttpJsonClient()

    @property
    def available(self) -> bool:
        return bool(self.api_url)

    def relay(self, number: str, message: str) -> bool:
        if not self.api_url:
            return False
        print(f"relay-send number={number} chars={len(message)}")
        try:
            status, body = self.http_client.post_json(
                self.api_url,
                {"number": number, "message": message},
                timeout_sec=self.timeout_sec,
            )
        except DownstreamFailure as exc:
            print(f"relay-failed number={number} error={exc}")
            return False
        if status < 200 or status >= 300:
            print(f"relay-failed number={number} status={status}")
            return False
        if not isinstance(body, dict) or body.get("status") != "success":
            print(f"relay-rejected number={number} response={body}")
            return False
        return True


def create_relay_client(config: dict[str, Any]) -> RelayApiClient:
    relay_conf = config.get("relay", {})
    return RelayApiClient(
        api_url=str(relay_conf.get("api_url", "") or ""),
        timeout_sec=float(relay_conf.get("timeout_sec", 20)),
    )

from __future__ import annotations

import json
import socket
from typing import Any, Protocol
from urllib import error, request

from core.errors import DownstreamFailure, DownstreamTimeout


class HttpJsonClient(Protocol):
    def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        timeout_sec: float = 20.0,
    ) -> tuple[int, Any]:
        ...


class UrllibHttpJsonClient:
    def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        timeout_sec: float = 20.0,
    ) -> tuple[int, Any]:
        data = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        req = request.Request(url=url, data=data, method="POST")
        req.add_header("Content-Type", "application/json; charset=utf-8")
        for key, value in (headers or {}).items():
            req.add_header(key, value)
        return send_request(req, timeout_sec)


def send_request(req: request.Request, timeout_sec: float) -> tuple[int, Any]:
    try:
        with request.urlopen(req, timeout=timeout_sec) as resp:
            status = int(getattr(resp, "status", 200))
            body = resp.read()
    except error.HTTPError as exc:
        try:
            body = exc.read().decode("utf-8", errors="ignore")
        except Exception:
            body = ""
        raise DownstreamFailure(f"request failed: status={exc.code} body={body}") from exc
    except error.URLError as exc:
        if isinstance(exc.reason, (socket.timeout, TimeoutError)):
            raise DownstreamTimeout(f"request timed out after {timeout_sec}s") from exc
        raise DownstreamFailure(f"request failed: {exc.reason}") from exc
    except (socket.timeout, TimeoutError) as exc:
        raise DownstreamTimeout(f"request timed out after {timeout_sec}s") from exc
    return status, _parse_json(body)


def _parse_json(body: bytes) -> Any:
    if not body:
        return None
    try:
        return json.loads(body.decode("utf-8"))
    except Exception:
        return None

from __future__ import annotations

import http.client
import posixpath
import re
import socket
import time
from typing import Any
from urllib import error, request
from urllib.parse import unquote, urlparse

from core.enums import MAX_TRANSFER_BYTES
from core.errors import DownstreamFailure, DownstreamTimeout, OversizedInput
from core.models import FetchedFile

DEFAULT_FILENAME = "downloaded_file"
_QUOTED_FILENAME_RE = re.compile(r'filename="([^"]+)"', re.IGNORECASE)
_EXTENDED_FILENAME_RE = re.compile(r"filename\*\s*=\s*(?:[\w-]+)?'[^']*'([^;]+)", re.IGNORECASE)
_BARE_FILENAME_RE = re.compile(r"filename=([^;\s]+)", re.IGNORECASE)


class UrlFetcher:
    """Downloads a URL into memory, refusing anything above ``max_bytes``.

    The limit is checked against ``Content-Length`` before reading and again
    while streaming, so an oversized body is never fully buffered. The whole
    download, not each socket read, is bounded by ``timeout_sec``.
    """

    def __init__(
        self,
        timeout_sec: float = 20.0,
        max_bytes: int = MAX_TRANSFER_BYTES,
        chunk_size: int = 64 * 1024,
        user_agent: str = "pinrelay-bot/0.1",
    ) -> None:
        self.timeout_sec = float(timeout_sec)
        self.max_bytes = int(max_bytes)
        self.chunk_size = max(1024, int(chunk_size))
        self.user_agent = user_agent

    def fetch(self, url: str) -> FetchedFile:
        req = request.Request(url=url, method="GET")
        req.add_header("User-Agent", self.user_agent)
        deadline = time.monotonic() + self.timeout_sec
        try:
            with request.urlopen(req, timeout=self.timeout_sec) as resp:
                declared = _to_int(resp.headers.get("Content-Length"))
                if declared is not None and declared > self.max_bytes:
                    raise OversizedInput(declared, self.max_bytes)

                chunks: list[bytes] = []
                total = 0
                while True:
                    if time.monotonic() > deadline:
                        raise DownstreamTimeout(f"download exceeded {self.timeout_sec}s")
                    chunk = resp.read(self.chunk_size)
                    if not chunk:
                        break
                    total += len(chunk)
                    if total > self.max_bytes:
                        raise OversizedInput(total, self.max_bytes)
                    chunks.append(chunk)

                if declared is not None and total != declared:
                    raise DownstreamFailure(f"incomplete download: got {total} of {declared} bytes")

                filename = filename_from_headers(resp.headers.get("Content-Disposition"))
                content_type = resp.headers.get("Content-Type")
        except error.HTTPError as exc:
            raise DownstreamFailure(f"HTTP error status={exc.code}") from exc
        except error.URLError as exc:
            if isinstance(exc.reason, (socket.timeout, TimeoutError)):
                raise DownstreamTimeout(f"download timed out after {self.timeout_sec}s") from exc
            raise DownstreamFailure(f"connection error: {exc.reason}") from exc
        except (socket.timeout, TimeoutError) as exc:
            raise DownstreamTimeout(f"download timed out after {self.timeout_sec}s") from exc
        except (http.client.HTTPException, OSError) as exc:
            raise DownstreamFailure(f"connection error: {exc}") from exc
        except ValueError as exc:
            raise DownstreamFailure(f"invalid url: {exc}") from exc

        return FetchedFile(
            content=b"".join(chunks),
            filename=filename or filename_from_url(url),
            size_bytes=total,
            content_type=content_type,
        )


def filename_from_headers(content_disposition: str | None) -> str | None:
    value = str(content_disposition or "")
    if not value:
        return None
    extended = _EXTENDED_FILENAME_RE.search(value)
    if extended is not None:
        name = _safe_basename(unquote(extended.group(1).strip()))
        if name:
            return name
    for pattern in (_QUOTED_FILENAME_RE, _BARE_FILENAME_RE):
        match = pattern.search(value)
        if match is not None:
            name = _safe_basename(match.group(1).strip())
            if name:
                return name
    return None


def filename_from_url(url: str) -> str:
    try:
        path = urlparse(url).path
    except ValueError:
        return DEFAULT_FILENAME
    return _safe_basename(unquote(path)) or DEFAULT_FILENAME


def _safe_basename(value: str) -> str:
    name = posixpath.basename(value.replace("\\", "/")).strip()
    if name in {"", ".", ".."}:
        return ""
    return name


def _to_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def create_url_fetcher(config: dict[str, Any]) -> UrlFetcher:
    fetch_conf = config.get("url_download", {})
    return UrlFetcher(
        timeout_sec=float(fetch_conf.get("timeout_sec", 20)),
        max_bytes=int(fetch_conf.get("max_file_bytes", MAX_TRANSFER_BYTES)),
        chunk_size=int(fetch_conf.get("chunk_size", 64 * 1024)),
    )

from __future__ import annotations

from typing import Protocol

from core.models import FetchedFile


class RelayCapability(Protocol):
    @property
    def available(self) -> bool: ...

    def relay(self, number: str, message: str) -> bool: ...


class CompletionCapability(Protocol):
    @property
    def available(self) -> bool: ...

    def complete(self, query: str) -> str: ...


class FetchCapability(Protocol):
    def fetch(self, url: str) -> FetchedFile: ...

from __future__ import annotations

import sqlite3

from botocore.exceptions import BotoCoreError, ClientError

from core.enums import MAX_TRANSFER_BYTES
from core.errors import OversizedInput, PersistenceUnavailable, PinNotFound
from core.models import Attachment, FileRecord
from fileshare.pin_registry import PinRegistry, normalize_pin
from persistence.repository_interface import FileRecordRepositoryProtocol

_STORE_ERRORS = (sqlite3.Error, ClientError, BotoCoreError)


class FileExchangeService:
    def __init__(
        self,
        repository: FileRecordRepositoryProtocol | None,
        *,
        registry: PinRegistry | None = None,
        max_file_bytes: int = MAX_TRANSFER_BYTES,
    ) -> None:
        self.repository = repository
        self.max_file_bytes = int(max_file_bytes)
        if registry is None and repository is not None:
            registry = PinRegistry(repository)
        self.registry = registry

    @property
    def available(self) -> bool:
        return self.repository is not None and self.registry is not None

    def bind(self, attachment: Attachment, owner_id: str) -> str:
        size_bytes = int(attachment.size_bytes or 0)
        if size_bytes > self.max_file_bytes:
            raise OversizedInput(size_bytes, self.max_file_bytes)
        repository, registry = self._require_store()

        try:
            pin = registry.issue_unique(owner_id)
        except _STORE_ERRORS as exc:
            raise PersistenceUnavailable(str(exc)) from exc

        record = FileRecord(
            pin=pin,
            remote_file_ref=attachment.remote_file_ref,
            display_name=attachment.display_name,
            mime_type=attachment.mime_type,
            size_bytes=size_bytes,
            owner_id=owner_id,
        )
        try:
            stored = repository.complete_file_record(record)
        except _STORE_ERRORS as exc:
            self._release_quietly(registry, pin)
            raise PersistenceUnavailable(str(exc)) from exc
        if stored is None:
            raise PersistenceUnavailable(f"reservation for pin {pin} was lost")
        print(f"file-bound pin={pin} owner_id={owner_id} size_bytes={size_bytes}")
        return pin

    def resolve(self, pin: str) -> FileRecord:
        normalized = normalize_pin(pin)
        _, registry = self._require_store()
        try:
            record = registry.lookup(normalized)
        except _STORE_ERRORS as exc:
            raise PersistenceUnavailable(str(exc)) from exc
        if record is None or not record.remote_file_ref:
            raise PinNotFound(normalized)
        if record.size_bytes > self.max_file_bytes:
            raise OversizedInput(record.size_bytes, self.max_file_bytes)
        return record

    def _require_store(self) -> tuple[FileRecordRepositoryProtocol, PinRegistry]:
        if self.repository is None or self.registry is None:
            raise PersistenceUnavailable("file store is not configured")
        return self.repository, self.registry

    @staticmethod
    def _release_quietly(registry: PinRegistry, pin: str) -> None:
        try:
            registry.release(pin)
        except _STORE_ERRORS as exc:
            print(f"pin-release-failed pin={pin} error={exc}")

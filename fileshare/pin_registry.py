from __future__ import annotations

import random
import string

from core.enums import FileRecordStatus
from core.errors import RegistryExhausted
from core.models import FileRecord
from persistence.repository_interface import FileRecordRepositoryProtocol

PIN_ALPHABET = string.ascii_uppercase + string.digits
DEFAULT_PIN_LENGTH = 6
DEFAULT_MAX_ATTEMPTS = 10


class PinRegistry:
    """Issues short PIN codes that are unique among the stored file records.

    Uniqueness comes from the store, not from entropy: every attempt is a
    single create-if-absent write of a reservation keyed by the candidate,
    and a rejected write simply means "try another candidate". The number
    of attempts is capped so issuance always terminates.
    """

    def __init__(
        self,
        repository: FileRecordRepositoryProtocol,
        *,
        length: int = DEFAULT_PIN_LENGTH,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        alphabet: str = PIN_ALPHABET,
        rng: random.Random | None = None,
    ) -> None:
        if not alphabet:
            raise ValueError("pin alphabet must not be empty")
        self.repository = repository
        self.length = max(1, int(length))
        self.max_attempts = max(1, int(max_attempts))
        self.alphabet = alphabet
        self._rng = rng or random.Random()

    def generate_candidate(self, length: int | None = None) -> str:
        size = self.length if length is None else max(1, int(length))
        return "".join(self._rng.choice(self.alphabet) for _ in range(size))

    def issue_unique(self, owner_id: str = "") -> str:
        for _ in range(self.max_attempts):
            candidate = self.generate_candidate()
            if self.repository.reserve_pin(candidate, owner_id):
                return candidate
        raise RegistryExhausted(self.max_attempts)

    def is_well_formed(self, pin: str) -> bool:
        candidate = normalize_pin(pin)
        return len(candidate) == self.length and all(ch in self.alphabet for ch in candidate)

    def lookup(self, pin: str) -> FileRecord | None:
        record = self.repository.get_file_record(normalize_pin(pin))
        if record is None or record.status != FileRecordStatus.READY:
            return None
        return record

    def release(self, pin: str) -> None:
        self.repository.release_pin(normalize_pin(pin))


def normalize_pin(value: str) -> str:
    return (value or "").strip().upper()

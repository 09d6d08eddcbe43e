from __future__ import annotations

import random
import tempfile
import threading
import unittest
from pathlib import Path

from core.enums import FileRecordStatus
from core.errors import RegistryExhausted
from core.models import FileRecord
from fileshare.pin_registry import PinRegistry, normalize_pin
from persistence.repository import SqliteBotRepository


class _LockedFileStore:
    def __init__(self) -> None:
        self.records: dict[str, FileRecord] = {}
        self.reserve_calls = 0
        self._lock = threading.Lock()

    def reserve_pin(self, pin: str, owner_id: str) -> bool:
        with self._lock:
            self.reserve_calls += 1
            if pin in self.records:
                return False
            self.records[pin] = FileRecord(
                pin=pin,
                remote_file_ref="",
                display_name="",
                mime_type="",
                size_bytes=0,
                owner_id=owner_id,
                status=FileRecordStatus.RESERVED,
            )
            return True

    def complete_file_record(self, record: FileRecord) -> FileRecord | None:
        with self._lock:
            self.records[record.pin] = record
            return record

    def release_pin(self, pin: str) -> None:
        with self._lock:
            self.records.pop(pin, None)

    def get_file_record(self, pin: str) -> FileRecord | None:
        return self.records.get(pin)


class PinRegistryTest(unittest.TestCase):
    def test_generate_candidate_uses_alphabet_and_length(self) -> None:
        registry = PinRegistry(_LockedFileStore(), rng=random.Random(7))
        pin = registry.generate_candidate()
        self.assertEqual(len(pin), 6)
        self.assertTrue(all(ch.isupper() or ch.isdigit() for ch in pin))
        self.assertEqual(len(registry.generate_candidate(length=9)), 9)

    def test_concurrent_issuance_never_hands_out_the_same_pin(self) -> None:
        store = _LockedFileStore()
        # 256 possible pins so threads collide often
        registry = PinRegistry(store, length=4, alphabet="ABCD", max_attempts=60)
        issued: list[str] = []
        issued_lock = threading.Lock()

        def worker() -> None:
            for _ in range(10):
                pin = registry.issue_unique("U1")
                with issued_lock:
                    issued.append(pin)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(issued), 80)
        self.assertEqual(len(set(issued)), 80)
        self.assertEqual(set(issued), set(store.records))

    def test_issue_unique_gives_up_after_max_attempts(self) -> None:
        store = _LockedFileStore()
        registry = PinRegistry(store, alphabet="A", max_attempts=10)

        self.assertEqual(registry.issue_unique("U1"), "AAAAAA")
        with self.assertRaises(RegistryExhausted) as ctx:
            registry.issue_unique("U2")

        self.assertEqual(ctx.exception.attempts, 10)
        self.assertEqual(store.reserve_calls, 11)

    def test_lookup_ignores_reservations(self) -> None:
        store = _LockedFileStore()
        registry = PinRegistry(store, alphabet="B", length=6)
        pin = registry.issue_unique("U1")
        self.assertIsNone(registry.lookup(pin))

        store.complete_file_record(
            FileRecord(
                pin=pin,
                remote_file_ref="file-1",
                display_name="a.pdf",
                mime_type="application/pdf",
                size_bytes=10,
                owner_id="U1",
            )
        )
        record = registry.lookup(pin.lower())
        self.assertIsNotNone(record)
        self.assertEqual(record.remote_file_ref, "file-1")

    def test_is_well_formed_follows_length_and_alphabet(self) -> None:
        registry = PinRegistry(_LockedFileStore())
        self.assertTrue(registry.is_well_formed(" ab12cd "))
        self.assertFalse(registry.is_well_formed("ABC12"))
        self.assertFalse(registry.is_well_formed("ABC-12"))

        longer = PinRegistry(_LockedFileStore(), length=8, alphabet="0123456789")
        self.assertTrue(longer.is_well_formed("12345678"))
        self.assertFalse(longer.is_well_formed("ABCD1234"))
        self.assertFalse(longer.is_well_formed("123456"))

    def test_normalize_pin(self) -> None:
        self.assertEqual(normalize_pin("  ab12cd \n"), "AB12CD")
        self.assertEqual(normalize_pin(""), "")


class SqlitePinReservationTest(unittest.TestCase):
    def test_reserve_is_create_if_absent(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            repo = SqliteBotRepository(str(Path(tmp) / "bot.db"))
            self.assertTrue(repo.reserve_pin("ABC123", "U1"))
            self.assertFalse(repo.reserve_pin("ABC123", "U2"))

            reserved = repo.get_file_record("ABC123")
            self.assertIsNotNone(reserved)
            self.assertEqual(reserved.status, FileRecordStatus.RESERVED)

    def test_complete_requires_matching_reservation(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            repo = SqliteBotRepository(str(Path(tmp) / "bot.db"))
            record = FileRecord(
                pin="ABC123",
                remote_file_ref="file-1",
                display_name="a.pdf",
                mime_type="application/pdf",
                size_bytes=10,
                owner_id="U1",
            )
            self.assertIsNone(repo.complete_file_record(record))

            repo.reserve_pin("ABC123", "U1")
            stored = repo.complete_file_record(record)
            self.assertIsNotNone(stored)
            self.assertEqual(stored.status, FileRecordStatus.READY)
            # a ready record cannot be completed again
            self.assertIsNone(repo.complete_file_record(record))

            repo.release_pin("ABC123")
            self.assertIsNotNone(repo.get_file_record("ABC123"))

    def test_release_drops_reservation(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            repo = SqliteBotRepository(str(Path(tmp) / "bot.db"))
            repo.reserve_pin("ZZZ999", "U1")
            repo.release_pin("ZZZ999")
            self.assertIsNone(repo.get_file_record("ZZZ999"))
            self.assertTrue(repo.reserve_pin("ZZZ999", "U2"))


if __name__ == "__main__":
    unittest.main()

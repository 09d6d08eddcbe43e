from __future__ import annotations

import unittest
from decimal import Decimal
from unittest import mock

from botocore.exceptions import ClientError

from core.enums import FileRecordStatus
from core.models import FileRecord
from persistence.dynamo_repository import DynamoBotRepository


def _client_error(code: str, operation: str = "PutItem") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


def _build_repo_for_test() -> tuple[DynamoBotRepository, dict[str, mock.Mock]]:
    tables: dict[str, mock.Mock] = {}

    def _table(name: str) -> mock.Mock:
        return tables.setdefault(name, mock.Mock(name=name))

    resource = mock.Mock()
    resource.Table.side_effect = _table
    repo = DynamoBotRepository(table_prefix="test", dynamodb_resource=resource)
    return repo, tables


def _record(pin: str = "ABC123") -> FileRecord:
    return FileRecord(
        pin=pin,
        remote_file_ref="file-1",
        display_name="a.pdf",
        mime_type="application/pdf",
        size_bytes=10,
        owner_id="U1",
    )


class DynamoBotRepositoryTest(unittest.TestCase):
    def test_tables_are_named_from_prefix(self) -> None:
        _, tables = _build_repo_for_test()
        self.assertEqual(set(tables), {"test-update-dedupe", "test-sessions", "test-files"})

    def test_reserve_pin_is_conditional_put(self) -> None:
        repo, tables = _build_repo_for_test()
        self.assertTrue(repo.reserve_pin("ABC123", "U1"))

        call = tables["test-files"].put_item.call_args
        self.assertEqual(call.kwargs["ConditionExpression"], "attribute_not_exists(pin)")
        self.assertEqual(call.kwargs["Item"]["status"], FileRecordStatus.RESERVED)

    def test_reserve_pin_collision_returns_false(self) -> None:
        repo, tables = _build_repo_for_test()
        tables["test-files"].put_item.side_effect = _client_error("ConditionalCheckFailedException")
        self.assertFalse(repo.reserve_pin("ABC123", "U1"))

    def test_reserve_pin_other_errors_propagate(self) -> None:
        repo, tables = _build_repo_for_test()
        tables["test-files"].put_item.side_effect = _client_error("ProvisionedThroughputExceededException")
        with self.assertRaises(ClientError):
            repo.reserve_pin("ABC123", "U1")

    def test_complete_file_record_lost_reservation(self) -> None:
        repo, tables = _build_repo_for_test()
        tables["test-files"].update_item.side_effect = _client_error(
            "ConditionalCheckFailedException", "UpdateItem"
        )
        self.assertIsNone(repo.complete_file_record(_record()))

    def test_complete_file_record_marks_ready(self) -> None:
        repo, tables = _build_repo_for_test()
        stored = repo.complete_file_record(_record())
        self.assertIsNotNone(stored)
        self.assertEqual(stored.status, FileRecordStatus.READY)
        values = tables["test-files"].update_item.call_args.kwargs["ExpressionAttributeValues"]
        self.assertEqual(values[":owner"], "U1")
        self.assertEqual(values[":ref"], "file-1")

    def test_get_file_record_converts_decimal_size(self) -> None:
        repo, tables = _build_repo_for_test()
        tables["test-files"].get_item.return_value = {
            "Item": {
                "pin": "ABC123",
                "status": "ready",
                "remote_file_ref": "file-1",
                "display_name": "a.pdf",
                "mime_type": "application/pdf",
                "size_bytes": Decimal("1024"),
                "owner_id": "U1",
            }
        }
        record = repo.get_file_record("ABC123")
        self.assertEqual(record.size_bytes, 1024)
        self.assertEqual(record.status, FileRecordStatus.READY)

    def test_release_pin_ignores_ready_records(self) -> None:
        repo, tables = _build_repo_for_test()
        tables["test-files"].delete_item.side_effect = _client_error(
            "ConditionalCheckFailedException", "DeleteItem"
        )
        repo.release_pin("ABC123")
        self.assertEqual(tables["test-files"].delete_item.call_count, 1)

    def test_mark_event_processed_duplicate(self) -> None:
        repo, tables = _build_repo_for_test()
        self.assertTrue(repo.mark_event_processed("update:1"))
        tables["test-update-dedupe"].put_item.side_effect = _client_error("ConditionalCheckFailedException")
        self.assertFalse(repo.mark_event_processed("update:1"))
        self.assertFalse(repo.mark_event_processed(""))

    def test_save_session_keeps_created_at(self) -> None:
        repo, tables = _build_repo_for_test()
        repo.save_session("100", "ASK_PIN", {"a": 1}, "2030-01-01T00:00:00+00:00")
        call = tables["test-sessions"].update_item.call_args
        self.assertIn("if_not_exists(created_at, :now)", call.kwargs["UpdateExpression"])
        self.assertGreater(call.kwargs["ExpressionAttributeValues"][":expires_at_epoch"], 0)

    def test_get_session_drops_expired_rows(self) -> None:
        repo, tables = _build_repo_for_test()
        tables["test-sessions"].get_item.return_value = {
            "Item": {
                "conversation_id": "100",
                "state": "ASK_PIN",
                "pending_json": "{}",
                "expires_at": "2000-01-01T00:00:00+00:00",
            }
        }
        self.assertIsNone(repo.get_session("100"))


if __name__ == "__main__":
    unittest.main()

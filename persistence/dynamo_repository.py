from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any

import boto3
from botocore.exceptions import ClientError

from core.enums import ConversationState, FileRecordStatus
from core.models import FileRecord, Session

_CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class DynamoBotRepository:
    def __init__(
        self,
        *,
        region_name: str | None = None,
        table_prefix: str = "pinrelay",
        event_table_name: str | None = None,
        sessions_table_name: str | None = None,
        files_table_name: str | None = None,
        event_ttl_days: int = 7,
        dynamodb_resource: Any | None = None,
    ) -> None:
        normalized_prefix = (table_prefix or "pinrelay").strip()
        self.event_ttl_days = max(1, int(event_ttl_days))
        self._ddb = dynamodb_resource or boto3.resource("dynamodb", region_name=region_name)
        self._event_table = self._ddb.Table(event_table_name or f"{normalized_prefix}-update-dedupe")
        self._sessions_table = self._ddb.Table(sessions_table_name or f"{normalized_prefix}-sessions")
        self._files_table = self._ddb.Table(files_table_name or f"{normalized_prefix}-files")

    def mark_event_processed(self, event_id: str) -> bool:
        key = (event_id or "").strip()
        if not key:
            return False
        now = datetime.now(timezone.utc)
        expires = int((now + timedelta(days=self.event_ttl_days)).timestamp())
        try:
            self._event_table.put_item(
                Item={
                    "event_id": key,
                    "received_at": now.isoformat(),
                    "expires_at_epoch": expires,
                },
                ConditionExpression="attribute_not_exists(event_id)",
            )
            return True
        except ClientError as exc:
            if _is_conditional_failure(exc):
                return False
            raise

    def get_session(self, conversation_id: str) -> Session | None:
        row = self._sessions_table.get_item(
            Key={"conversation_id": conversation_id},
            ConsistentRead=True,
        ).get("Item")
        if row is None:
            return None
        expires_at = str(row.get("expires_at", "") or "")
        if expires_at and expires_at <= _utc_now():
            return None
        try:
            state = ConversationState(str(row.get("state", "")))
        except ValueError:
            return None
        pending = _load_json(row.get("pending_json"))
        return Session(
            conversation_id=str(row["conversation_id"]),
            state=state,
            pending=pending if isinstance(pending, dict) else {},
            expires_at=expires_at,
            created_at=str(row.get("created_at", "") or ""),
            updated_at=str(row.get("updated_at", "") or ""),
        )

    def save_session(
        self,
        conversation_id: str,
        state: str,
        pending: dict[str, Any],
        expires_at: str,
    ) -> None:
        now = _utc_now()
        self._sessions_table.update_item(
            Key={"conversation_id": conversation_id},
            UpdateExpression=(
                "SET #state = :state, pending_json = :pending, expires_at = :expires_at, "
                "expires_at_epoch = :expires_at_epoch, updated_at = :now, "
                "created_at = if_not_exists(created_at, :now)"
            ),
            ExpressionAttributeNames={"#state": "state"},
            ExpressionAttributeValues={
                ":state": state,
                ":pending": json.dumps(pending, ensure_ascii=False),
                ":expires_at": expires_at,
                ":expires_at_epoch": _iso_to_epoch(expires_at),
                ":now": now,
            },
        )

    def delete_session(self, conversation_id: str) -> None:
        self._sessions_table.delete_item(Key={"conversation_id": conversation_id})

    def reserve_pin(self, pin: str, owner_id: str) -> bool:
        try:
            self._files_table.put_item(
                Item={
                    "pin": pin,
                    "status": FileRecordStatus.RESERVED,
                    "owner_id": owner_id,
                    "created_at": _utc_now(),
                },
                ConditionExpression="attribute_not_exists(pin)",
            )
            return True
        except ClientError as exc:
            if _is_conditional_failure(exc):
                return False
            raise

    def complete_file_record(self, record: FileRecord) -> FileRecord | None:
        uploaded_at = _utc_now()
        try:
            self._files_table.update_item(
                Key={"pin": record.pin},
                UpdateExpression=(
                    "SET #status = :ready, remote_file_ref = :ref, display_name = :name, "
                    "mime_type = :mime, size_bytes = :size, uploaded_at = :uploaded_at"
                ),
                ConditionExpression="#status = :reserved AND owner_id = :owner",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues={
                    ":ready": FileRecordStatus.READY,
                    ":reserved": FileRecordStatus.RESERVED,
                    ":owner": record.owner_id,
                    ":ref": record.remote_file_ref,
                    ":name": record.display_name,
                    ":mime": record.mime_type,
                    ":size": int(record.size_bytes),
                    ":uploaded_at": uploaded_at,
                },
            )
        except ClientError as exc:
            if _is_conditional_failure(exc):
                return None
            raise
        return FileRecord(
            pin=record.pin,
            remote_file_ref=record.remote_file_ref,
            display_name=record.display_name,
            mime_type=record.mime_type,
            size_bytes=int(record.size_bytes),
            owner_id=record.owner_id,
            uploaded_at=uploaded_at,
            status=FileRecordStatus.READY,
        )

    def release_pin(self, pin: str) -> None:
        try:
            self._files_table.delete_item(
                Key={"pin": pin},
                ConditionExpression="#status = :reserved",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues={":reserved": FileRecordStatus.RESERVED},
            )
        except ClientError as exc:
            if not _is_conditional_failure(exc):
                raise

    def get_file_record(self, pin: str) -> FileRecord | None:
        row = self._files_table.get_item(Key={"pin": pin}, ConsistentRead=True).get("Item")
        if row is None:
            return None
        return FileRecord(
            pin=str(row["pin"]),
            remote_file_ref=str(row.get("remote_file_ref", "") or ""),
            display_name=str(row.get("display_name", "") or ""),
            mime_type=str(row.get("mime_type", "") or ""),
            size_bytes=_to_int(row.get("size_bytes")),
            owner_id=str(row.get("owner_id", "") or ""),
            uploaded_at=str(row.get("uploaded_at", "") or ""),
            status=str(row.get("status", "") or ""),
        )


def _is_conditional_failure(exc: ClientError) -> bool:
    code = str(exc.response.get("Error", {}).get("Code", ""))
    return code == _CONDITIONAL_CHECK_FAILED


def _to_int(value: Any) -> int:
    # boto3 returns DynamoDB numbers as Decimal
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _load_json(text: str | None) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except Exception:
        return None


def _iso_to_epoch(text: str) -> int:
    try:
        return int(datetime.fromisoformat(text).timestamp())
    except Exception:
        return 0

from __future__ import annotations

from typing import Any

from persistence.dynamo_repository import DynamoBotRepository
from persistence.repository import SqliteBotRepository
from persistence.repository_interface import BotRepositoryProtocol


def create_bot_repository(config: dict[str, Any]) -> BotRepositoryProtocol:
    storage_conf = config.get("storage", {})
    backend = str(storage_conf.get("backend", "sqlite") or "sqlite").strip().lower()

    if backend == "dynamodb":
        ddb_conf = storage_conf.get("dynamodb", {}) if isinstance(storage_conf, dict) else {}
        tables = ddb_conf.get("tables", {}) if isinstance(ddb_conf, dict) else {}
        return DynamoBotRepository(
            region_name=_as_optional_str(ddb_conf.get("region")),
            table_prefix=str(ddb_conf.get("table_prefix", "pinrelay")),
            event_table_name=_as_optional_str(tables.get("update_dedupe")),
            sessions_table_name=_as_optional_str(tables.get("sessions")),
            files_table_name=_as_optional_str(tables.get("files")),
            event_ttl_days=int(ddb_conf.get("event_ttl_days", 7)),
        )

    if backend != "sqlite":
        raise ValueError(f"unsupported storage backend: {backend}")

    sqlite_path = str(storage_conf.get("sqlite_path", "data/bot/pinrelay.db"))
    return SqliteBotRepository(sqlite_path=sqlite_path)


def _as_optional_str(value: Any) -> str | None:
    text = str(value or "").strip()
    return text or None

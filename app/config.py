from __future__ import annotations

import json
import os
from copy import deepcopy
from pathlib import Path
from typing import Any, Mapping

import yaml

from core.enums import MAX_TRANSFER_BYTES

DEFAULT_CONFIG: dict[str, Any] = {
    "telegram": {
        "enabled": True,
        "bot_token": None,
        "webhook_secret": None,
        "webhook_path": "/webhook/telegram",
        "api_base_url": "https://api.telegram.org",
        "timeout_sec": 20,
    },
    "storage": {
        "backend": "sqlite",
        "sqlite_path": "data/bot/pinrelay.db",
        "dynamodb": {
            "region": None,
            "table_prefix": "pinrelay",
            "event_ttl_days": 7,
            "tables": {
                "update_dedupe": None,
                "sessions": None,
                "files": None,
            },
        },
    },
    "conversation": {
        "session_ttl_minutes": 60,
        "cache_sessions": True,
    },
    "file_exchange": {
        "enabled": True,
        "max_file_bytes": MAX_TRANSFER_BYTES,
        "pin_length": 6,
        "pin_max_attempts": 10,
    },
    "relay": {
        "api_url": None,
        "timeout_sec": 20,
    },
    "ai": {
        "enabled": True,
        "api_key": None,
        "model": "gemini-1.5-flash",
        "timeout_sec": 20,
    },
    "url_download": {
        "timeout_sec": 20,
        "max_file_bytes": MAX_TRANSFER_BYTES,
        "chunk_size": 65536,
    },
}

# environment variable -> config path
ENV_OVERRIDES: dict[str, tuple[str, ...]] = {
    "BOT_TOKEN": ("telegram", "bot_token"),
    "TELEGRAM_WEBHOOK_SECRET": ("telegram", "webhook_secret"),
    "TELEGRAM_WEBHOOK_PATH": ("telegram", "webhook_path"),
    "GEMINI_API_KEY": ("ai", "api_key"),
    "RELAY_API_URL": ("relay", "api_url"),
    "STORAGE_BACKEND": ("storage", "backend"),
    "SQLITE_PATH": ("storage", "sqlite_path"),
    "AWS_REGION": ("storage", "dynamodb", "region"),
    "DYNAMODB_TABLE_PREFIX": ("storage", "dynamodb", "table_prefix"),
    "UPDATE_DEDUPE_TABLE": ("storage", "dynamodb", "tables", "update_dedupe"),
    "SESSIONS_TABLE": ("storage", "dynamodb", "tables", "sessions"),
    "FILES_TABLE": ("storage", "dynamodb", "tables", "files"),
}


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: str | None = None) -> dict[str, Any]:
    if not config_path:
        return deepcopy(DEFAULT_CONFIG)

    path = Path(config_path)
    if not path.exists():
        return deepcopy(DEFAULT_CONFIG)

    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return deepcopy(DEFAULT_CONFIG)

    if path.suffix.lower() == ".json":
        loaded = json.loads(text)
    else:
        loaded = yaml.safe_load(text)
    data = loaded if isinstance(loaded, dict) else {}
    return deep_merge(deepcopy(DEFAULT_CONFIG), data)


def apply_env_overrides(config: dict[str, Any], environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    env = os.environ if environ is None else environ
    result = deepcopy(config)
    for name, path in ENV_OVERRIDES.items():
        value = str(env.get(name, "") or "").strip()
        if not value:
            continue
        node = result
        for key in path[:-1]:
            child = node.get(key)
            if not isinstance(child, dict):
                child = {}
                node[key] = child
            node = child
        node[path[-1]] = value
    return result


def load_runtime_config(config_path: str | None = None, environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    env = os.environ if environ is None else environ
    path = config_path or str(env.get("BOT_CONFIG_PATH", "") or "config.yaml")
    return apply_env_overrides(load_config(path), env)

from __future__ import annotations

import argparse
import json
from typing import Any

from app.config import load_runtime_config
from tgbot.bot_client import TelegramApiError, TelegramBotClient

DEFAULT_CONFIG_PATH = "config.yaml"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="PIN relay Telegram bot administration")
    subparsers = parser.add_subparsers(dest="command", required=True)

    set_parser = subparsers.add_parser("set-webhook", help="Register the webhook URL with Telegram")
    set_parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to config.yaml or config.json")
    set_parser.add_argument("--url", required=True, help="Public HTTPS URL of the webhook endpoint")
    set_parser.add_argument("--drop-pending-updates", action="store_true")

    delete_parser = subparsers.add_parser("delete-webhook", help="Remove the registered webhook")
    delete_parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to config.yaml or config.json")
    delete_parser.add_argument("--drop-pending-updates", action="store_true")

    info_parser = subparsers.add_parser("webhook-info", help="Show the current webhook registration")
    info_parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to config.yaml or config.json")
    return parser


def build_bot_client(config: dict[str, Any]) -> TelegramBotClient:
    telegram_conf = config.get("telegram", {})
    return TelegramBotClient(
        bot_token=str(telegram_conf.get("bot_token", "") or ""),
        api_base_url=str(telegram_conf.get("api_base_url", "https://api.telegram.org")),
        timeout_sec=float(telegram_conf.get("timeout_sec", 20)),
    )


def cmd_set_webhook(args: argparse.Namespace, config: dict[str, Any], client: TelegramBotClient) -> int:
    url = str(args.url or "").strip()
    if not url.startswith("https://"):
        print(f"webhook url must use https: {url}")
        return 1
    secret = str(config.get("telegram", {}).get("webhook_secret", "") or "")
    client.set_webhook(url, secret_token=secret, drop_pending_updates=args.drop_pending_updates)
    print(f"webhook-set url={url} secret={'yes' if secret else 'no'}")
    return 0


def cmd_delete_webhook(args: argparse.Namespace, client: TelegramBotClient) -> int:
    client.delete_webhook(drop_pending_updates=args.drop_pending_updates)
    print("webhook-deleted")
    return 0


def cmd_webhook_info(client: TelegramBotClient) -> int:
    info = client.get_webhook_info()
    print(json.dumps(info, ensure_ascii=False, indent=2))
    return 0


def main(argv: list[str] | None = None, client: TelegramBotClient | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config = load_runtime_config(args.config)
    bot_client = client or build_bot_client(config)

    try:
        if args.command == "set-webhook":
            return cmd_set_webhook(args, config, bot_client)
        if args.command == "delete-webhook":
            return cmd_delete_webhook(args, bot_client)
        if args.command == "webhook-info":
            return cmd_webhook_info(bot_client)
    except TelegramApiError as exc:
        print(f"{args.command} failed: {exc}")
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())

from __future__ import annotations

import hmac


def verify_webhook_secret(expected_secret: str, received: str | None) -> bool:
    secret = (expected_secret or "").strip()
    if not secret:
        # webhook registered without a secret_token
        return True
    token = (received or "").strip()
    if not token:
        return False
    return hmac.compare_digest(secret.encode("utf-8"), token.encode("utf-8"))

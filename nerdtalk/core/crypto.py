from __future__ import annotations

import base64
import hashlib
import hmac
import time
from typing import Optional

SECRET_PREFIX = "whsec_"

def _secret_bytes(secret: str) -> bytes:
    if secret.startswith(SECRET_PREFIX):
        return base64.b64decode(secret[len(SECRET_PREFIX):])
    return secret.encode("utf-8")

def sign_webhook(secret: str, msg_id: str, timestamp: str, body: bytes) -> str:
    signed = f"{msg_id}.{timestamp}.".encode("utf-8") + body
    digest = hmac.new(_secret_bytes(secret), signed, hashlib.sha256).digest()
    return "v1," + base64.b64encode(digest).decode("ascii")

def verify_webhook_signature(
    secret: str,
    msg_id: Optional[str],
    timestamp: Optional[str],
    signature_header: Optional[str],
    body: bytes,
    *,
    tolerance_seconds: int = 300,
    now: Optional[int] = None,
) -> bool:
    """Check a svix-style delivery: any "v1,<sig>" entry may match."""
    if not (secret and msg_id and timestamp and signature_header):
        return False
    try:
        ts = int(timestamp)
    except ValueError:
        return False
    current = int(time.time()) if now is None else now
    if abs(current - ts) > tolerance_seconds:
        return False

    expected = sign_webhook(secret, msg_id, timestamp, body).encode("ascii")
    for candidate in signature_header.split():
        if hmac.compare_digest(candidate.encode("ascii", "ignore"), expected):
            return True
    return False

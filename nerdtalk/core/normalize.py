from __future__ import annotations

import re
from typing import Optional

from .errors import ValidationError

_USERNAME_RE = re.compile(r"^[a-z0-9_][a-z0-9_.-]{0,47}$")

def client_ip_from_request(req) -> str:
    xff = req.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    return req.client.host if req.client else "0.0.0.0"

def clean_str(value: Optional[str], *, max_len: Optional[int] = None) -> Optional[str]:
    if value is None:
        return None
    trimmed = value.strip()
    if not trimmed:
        return None
    if max_len is not None and len(trimmed) > max_len:
        raise ValidationError(f"Value too long (max {max_len})")
    return trimmed

def clean_text(value: Optional[str], *, min_len: int, max_len: int) -> str:
    s = (value or "").strip()
    if not s:
        raise ValidationError("text is required")
    if len(s) < min_len:
        raise ValidationError(f"Minimum {min_len} characters.")
    if len(s) > max_len:
        raise ValidationError(f"Maximum {max_len} characters.")
    return s

def normalize_username(value: Optional[str]) -> str:
    s = (value or "").strip().lower().lstrip("@")
    if not s or not _USERNAME_RE.match(s):
        raise ValidationError("Invalid username")
    return s

def require_id(value: Optional[str], field: str) -> str:
    s = (value or "").strip()
    if not s:
        raise ValidationError(f"{field} is required")
    return s

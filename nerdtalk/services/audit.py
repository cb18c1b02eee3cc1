from __future__ import annotations

import logging
from typing import Any, Optional

from nerdtalk.core.normalize import client_ip_from_request
from nerdtalk.core.settings import S

logger = logging.getLogger("nerdtalk.audit")


def audit_event(event: str, user_id: Optional[str], request: Any = None, *, outcome: str = "success", **fields: Any) -> None:
    if not S.audit_log_enabled:
        return
    ip = client_ip_from_request(request) if request is not None else None
    extra = " ".join(f"{k}={v}" for k, v in sorted(fields.items()))
    logger.info("event=%s user=%s outcome=%s ip=%s %s", event, user_id, outcome, ip, extra)

from __future__ import annotations

import time
from datetime import datetime, timezone

def now_ts() -> int:
    return int(time.time())

def now_iso() -> str:
    # Microsecond precision keeps created_at usable as an index sort key
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"


class NerdTalkError(Exception):
    """Base class for failures surfaced to API callers."""

    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFound(NerdTalkError):
    status_code = 404

    def __init__(self, kind: str, ident: Optional[str]):
        super().__init__(f"{kind} not found")
        self.kind = kind
        self.ident = ident


class ValidationError(NerdTalkError):
    status_code = 400


class Unauthorized(NerdTalkError):
    status_code = 401


class Forbidden(NerdTalkError):
    status_code = 403


class CorruptTreeError(NerdTalkError):
    """A post was reached twice while walking a subtree (cycle or shared child)."""

    status_code = 500

    def __init__(self, root_id: str, post_id: str):
        super().__init__(f"corrupt reply tree under {root_id}: {post_id} reached twice")
        self.root_id = root_id
        self.post_id = post_id


class StorageUnavailable(NerdTalkError):
    status_code = 503


def is_conditional_failure(exc: BaseException) -> bool:
    if not isinstance(exc, ClientError):
        return False
    return exc.response.get("Error", {}).get("Code") == CONDITIONAL_CHECK_FAILED


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """
    Translate boto3/botocore failures into StorageUnavailable.

    Conditional check failures are re-raised untouched; callers decide what
    a failed precondition means for them.
    """
    try:
        yield
    except ClientError as exc:
        if is_conditional_failure(exc):
            raise
        msg = exc.response.get("Error", {}).get("Message", "unknown")
        logger.exception("DynamoDB error during %s", operation)
        raise StorageUnavailable(f"storage error during {operation}: {msg}") from exc
    except BotoCoreError as exc:
        logger.exception("DynamoDB unreachable during %s", operation)
        raise StorageUnavailable(f"storage unavailable during {operation}") from exc

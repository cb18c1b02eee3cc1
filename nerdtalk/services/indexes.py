"""
Author -> posts and community -> posts back-references.

These sets are caches of a derivable relationship, maintained at write time
so "my posts" and "community posts" need no join. They may go stale (a crash
between the store delete and the scrub leaves dangling ids); readers skip
ids that no longer resolve.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional, Set

from botocore.exceptions import ClientError

from nerdtalk.core.errors import NotFound, is_conditional_failure, storage_errors
from nerdtalk.core.tables import T

logger = logging.getLogger(__name__)

SCAN_PAGE_LIMIT = 200


def _add_ref(table: Any, key_field: str, kind: str, owner_id: str, post_id: str) -> None:
    try:
        with storage_errors(f"record {kind} post"):
            table.update_item(
                Key={key_field: owner_id},
                UpdateExpression="ADD post_ids :ids",
                ConditionExpression=f"attribute_exists({key_field})",
                ExpressionAttributeValues={":ids": {post_id}},
            )
    except ClientError as exc:
        if not is_conditional_failure(exc):
            raise
        raise NotFound(kind, owner_id) from exc


def _remove_refs(table: Any, key_field: str, kind: str, owner_id: str, post_ids: Set[str]) -> bool:
    try:
        with storage_errors(f"scrub {kind} posts"):
            table.update_item(
                Key={key_field: owner_id},
                UpdateExpression="DELETE post_ids :ids",
                ConditionExpression=f"attribute_exists({key_field})",
                ExpressionAttributeValues={":ids": set(post_ids)},
            )
    except ClientError as exc:
        if not is_conditional_failure(exc):
            raise
        return False
    return True


def _owners_referencing(table: Any, key_field: str, post_ids: Set[str]) -> Set[str]:
    owners: Set[str] = set()
    last_key = None
    while True:
        kwargs: Dict[str, Any] = {
            "ProjectionExpression": f"{key_field}, post_ids",
            "Limit": SCAN_PAGE_LIMIT,
        }
        if last_key:
            kwargs["ExclusiveStartKey"] = last_key
        with storage_errors("scan index owners"):
            resp = table.scan(**kwargs)
        for item in resp.get("Items", []):
            if post_ids & set(item.get("post_ids") or ()):
                owners.add(item[key_field])
        last_key = resp.get("LastEvaluatedKey")
        if not last_key:
            break
    return owners


def record_authorship(user_id: str, post_id: str) -> None:
    _add_ref(T.users, "user_id", "user", user_id, post_id)


def record_community_post(community_id: str, post_id: str) -> None:
    _add_ref(T.communities, "community_id", "community", community_id, post_id)


def scrub(
    post_ids: Iterable[str],
    author_ids: Optional[Iterable[str]] = None,
    community_ids: Optional[Iterable[str]] = None,
) -> None:
    """
    Remove post_ids from every user's and community's post set.

    When author_ids / community_ids are given only those owners are touched;
    otherwise every owner holding any of the ids is found by scanning.
    Owners that no longer exist are skipped. Safe to repeat.
    """
    ids = {p for p in post_ids if p}
    if not ids:
        return

    users = set(author_ids) if author_ids is not None else _owners_referencing(T.users, "user_id", ids)
    communities = (
        set(community_ids)
        if community_ids is not None
        else _owners_referencing(T.communities, "community_id", ids)
    )

    for user_id in sorted(u for u in users if u):
        if not _remove_refs(T.users, "user_id", "user", user_id, ids):
            logger.info("scrub skipped missing user %s", user_id)
    for community_id in sorted(c for c in communities if c):
        if not _remove_refs(T.communities, "community_id", "community", community_id, ids):
            logger.info("scrub skipped missing community %s", community_id)

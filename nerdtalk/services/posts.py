from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from nerdtalk.core.errors import NotFound, ValidationError, is_conditional_failure, storage_errors
from nerdtalk.core.normalize import clean_text, require_id
from nerdtalk.core.settings import S
from nerdtalk.core.tables import T
from nerdtalk.core.time import now_iso

logger = logging.getLogger(__name__)

# Sparse attribute carried only by top-level posts; it keys the feed index,
# so replies can never show up in a top-level listing.
FEED_TOP = "TOP"

QUERY_PAGE_LIMIT = 200
UNLINK_ATTEMPTS = 3


def _query_all(**kwargs: Any) -> Iterator[Dict[str, Any]]:
    last_key = None
    while True:
        if last_key:
            kwargs["ExclusiveStartKey"] = last_key
        with storage_errors("query posts"):
            resp = T.posts.query(Limit=QUERY_PAGE_LIMIT, **kwargs)
        for item in resp.get("Items", []):
            yield item
        last_key = resp.get("LastEvaluatedKey")
        if not last_key:
            break


def find_post(post_id: Optional[str]) -> Optional[Dict[str, Any]]:
    if not post_id:
        return None
    with storage_errors("get post"):
        return T.posts.get_item(Key={"post_id": post_id}).get("Item")


def get_post(post_id: Optional[str]) -> Dict[str, Any]:
    item = find_post(post_id)
    if not item:
        raise NotFound("post", post_id)
    return item


def get_posts(post_ids: Iterable[str]) -> List[Dict[str, Any]]:
    """Resolve ids in the given order, skipping ones that no longer exist."""
    out: List[Dict[str, Any]] = []
    for post_id in post_ids:
        item = find_post(post_id)
        if item:
            out.append(item)
    return out


def insert_post(
    text: str,
    author_id: str,
    community_id: Optional[str] = None,
    parent_id: Optional[str] = None,
) -> Dict[str, Any]:
    body = clean_text(text, min_len=S.min_text_length, max_len=S.max_text_length)
    author_id = require_id(author_id, "author_id")
    if parent_id is not None:
        get_post(parent_id)

    post_id = uuid.uuid4().hex
    item: Dict[str, Any] = {
        "post_id": post_id,
        "text": body,
        "author_id": author_id,
        "created_at": now_iso(),
        "children": [],
    }
    if community_id:
        item["community_id"] = community_id
    if parent_id is not None:
        item["parent_id"] = parent_id
    else:
        item["feed"] = FEED_TOP

    with storage_errors("insert post"):
        T.posts.put_item(Item=item, ConditionExpression="attribute_not_exists(post_id)")

    if parent_id is not None:
        _append_child(parent_id, post_id)

    logger.info("post %s created by %s (parent=%s community=%s)", post_id, author_id, parent_id, community_id)
    return item


def _append_child(parent_id: str, child_id: str) -> None:
    # Single-item update: concurrent replies to one parent serialize here.
    try:
        with storage_errors("link reply"):
            T.posts.update_item(
                Key={"post_id": parent_id},
                UpdateExpression="SET children = list_append(if_not_exists(children, :empty), :child)",
                ConditionExpression="attribute_exists(post_id)",
                ExpressionAttributeValues={":empty": [], ":child": [child_id]},
            )
    except ClientError as exc:
        if not is_conditional_failure(exc):
            raise
        logger.warning("parent %s vanished before reply %s was linked; removing reply", parent_id, child_id)
        delete_by_ids({child_id})
        raise NotFound("post", parent_id) from exc


def _unlink_child(parent_id: str, child_id: str) -> None:
    for _ in range(UNLINK_ATTEMPTS):
        parent = find_post(parent_id)
        children = (parent or {}).get("children") or []
        if child_id not in children:
            return
        idx = children.index(child_id)
        try:
            with storage_errors("unlink reply"):
                T.posts.update_item(
                    Key={"post_id": parent_id},
                    UpdateExpression=f"REMOVE children[{idx}]",
                    ConditionExpression=f"children[{idx}] = :child",
                    ExpressionAttributeValues={":child": child_id},
                )
            return
        except ClientError as exc:
            if not is_conditional_failure(exc):
                raise
            # children shifted by a concurrent unlink; re-read and retry
    logger.error("could not unlink reply %s from %s after %d attempts", child_id, parent_id, UNLINK_ATTEMPTS)


def retract_post(post: Dict[str, Any]) -> None:
    """
    Undo insert_post for a post nobody has seen referenced yet: delete the
    record and take its id back out of the parent's children log.
    """
    delete_by_ids({post["post_id"]})
    if post.get("parent_id"):
        _unlink_child(post["parent_id"], post["post_id"])
    logger.info("post %s retracted", post["post_id"])


def _count(index_name: str, attr: str, value: str) -> int:
    total = 0
    last_key = None
    while True:
        kwargs: Dict[str, Any] = {
            "IndexName": index_name,
            "KeyConditionExpression": Key(attr).eq(value),
            "Select": "COUNT",
        }
        if last_key:
            kwargs["ExclusiveStartKey"] = last_key
        with storage_errors("count posts"):
            resp = T.posts.query(**kwargs)
        total += int(resp.get("Count", 0))
        last_key = resp.get("LastEvaluatedKey")
        if not last_key:
            break
    return total


def count_direct_children(parent_id: str) -> int:
    """Replies that still exist, unlike len(children) which keeps deleted ids."""
    return _count(S.posts_parent_index, "parent_id", parent_id)


def count_top_level() -> int:
    return _count(S.posts_feed_index, "feed", FEED_TOP)


def list_top_level(page: int, page_size: int) -> Tuple[List[Dict[str, Any]], bool]:
    """
    Newest-first page of top-level posts, 1-based offset paging.

    Pages are not stable under concurrent inserts: a new post shifts every
    later page by one.
    """
    if page < 1:
        raise ValidationError("page must be >= 1")
    if page_size < 1 or page_size > S.max_page_size:
        raise ValidationError(f"page_size must be between 1 and {S.max_page_size}")

    skip = (page - 1) * page_size
    total = count_top_level()

    posts: List[Dict[str, Any]] = []
    if skip < total:
        seen = 0
        for item in _query_all(
            IndexName=S.posts_feed_index,
            KeyConditionExpression=Key("feed").eq(FEED_TOP),
            ScanIndexForward=False,
        ):
            if item.get("parent_id"):
                continue
            if seen >= skip:
                posts.append(item)
                if len(posts) >= page_size:
                    break
            seen += 1

    return posts, total > page * page_size


def list_direct_children(parent_id: str) -> List[Dict[str, Any]]:
    return list(
        _query_all(
            IndexName=S.posts_parent_index,
            KeyConditionExpression=Key("parent_id").eq(parent_id),
            ScanIndexForward=True,
        )
    )


def delete_by_ids(post_ids: Iterable[str]) -> int:
    """Delete every id that still exists; absent ids are a no-op."""
    deleted = 0
    for post_id in sorted({p for p in post_ids if p}):
        with storage_errors("delete post"):
            resp = T.posts.delete_item(Key={"post_id": post_id}, ReturnValues="ALL_OLD")
        if resp.get("Attributes"):
            deleted += 1
    return deleted

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Iterable, Optional

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from nerdtalk.core.errors import NotFound, is_conditional_failure, storage_errors
from nerdtalk.core.normalize import clean_str, require_id
from nerdtalk.core.settings import S
from nerdtalk.core.tables import T
from nerdtalk.core.time import now_ts
from nerdtalk.services.cascade import delete_post
from nerdtalk.services.users import find_user, get_user

logger = logging.getLogger(__name__)

MAX_NAME_LEN = 80
MAX_BIO_LEN = 1000
MAX_IMAGE_URL_LEN = 512
MAX_SLUG_LEN = 64


def find_community(community_id: Optional[str]) -> Optional[Dict[str, Any]]:
    if not community_id:
        return None
    with storage_errors("get community"):
        return T.communities.get_item(Key={"community_id": community_id}).get("Item")


def get_community(community_id: Optional[str]) -> Dict[str, Any]:
    item = find_community(community_id)
    if not item:
        raise NotFound("community", community_id)
    return item


def find_community_by_external_id(external_id: Optional[str]) -> Optional[Dict[str, Any]]:
    if not external_id:
        return None
    with storage_errors("lookup community"):
        resp = T.communities.query(
            IndexName=S.communities_external_index,
            KeyConditionExpression=Key("external_id").eq(external_id),
            Limit=1,
        )
    items = resp.get("Items", [])
    return items[0] if items else None


def get_community_by_external_id(external_id: Optional[str]) -> Dict[str, Any]:
    item = find_community_by_external_id(external_id)
    if not item:
        raise NotFound("community", external_id)
    return item


def resolve_community_id(external_id: Optional[str]) -> str:
    """Map the identity provider's organization id to our internal community id."""
    return get_community_by_external_id(external_id)["community_id"]


def create_community(
    external_id: str,
    name: str,
    username: Optional[str] = None,
    image: Optional[str] = None,
    bio: Optional[str] = None,
    created_by: Optional[str] = None,
) -> Dict[str, Any]:
    external_id = require_id(external_id, "external_id")
    existing = find_community_by_external_id(external_id)
    if existing:
        # Webhook redeliveries land here
        logger.info("community for organization %s already exists", external_id)
        return existing

    item = {
        "community_id": uuid.uuid4().hex,
        "external_id": external_id,
        "name": clean_str(name, max_len=MAX_NAME_LEN) or external_id,
        "username": clean_str(username, max_len=MAX_SLUG_LEN),
        "image": clean_str(image, max_len=MAX_IMAGE_URL_LEN),
        "bio": clean_str(bio, max_len=MAX_BIO_LEN),
        "created_by": created_by,
        "created_at": now_ts(),
    }
    item = {k: v for k, v in item.items() if v is not None}
    with storage_errors("create community"):
        T.communities.put_item(Item=item, ConditionExpression="attribute_not_exists(community_id)")
    logger.info("community %s created for organization %s", item["community_id"], external_id)

    if created_by:
        if find_user(created_by):
            _link_member(item["community_id"], created_by)
        else:
            logger.warning("community %s creator %s has no user record", item["community_id"], created_by)
    return item


def update_community_info(
    external_id: str,
    name: Optional[str] = None,
    username: Optional[str] = None,
    image: Optional[str] = None,
) -> Dict[str, Any]:
    community = get_community_by_external_id(external_id)
    updates = {
        "name": clean_str(name, max_len=MAX_NAME_LEN),
        "username": clean_str(username, max_len=MAX_SLUG_LEN),
        "image": clean_str(image, max_len=MAX_IMAGE_URL_LEN),
    }
    updates = {k: v for k, v in updates.items() if v is not None}
    if not updates:
        return community

    names = {f"#{k}": k for k in updates}
    values = {f":{k}": v for k, v in updates.items()}
    values[":ts"] = now_ts()
    assignments = ", ".join(f"#{k} = :{k}" for k in updates)
    try:
        with storage_errors("update community"):
            resp = T.communities.update_item(
                Key={"community_id": community["community_id"]},
                UpdateExpression=f"SET {assignments}, updated_at = :ts",
                ConditionExpression="attribute_exists(community_id)",
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ReturnValues="ALL_NEW",
            )
    except ClientError as exc:
        if not is_conditional_failure(exc):
            raise
        raise NotFound("community", external_id) from exc
    return resp.get("Attributes", {})


def delete_community(external_id: str) -> int:
    """
    Remove a community: cascade-delete every post made under it, drop it
    from its members' community sets, then delete the record. Returns the
    number of posts removed.
    """
    community = get_community_by_external_id(external_id)
    community_id = community["community_id"]

    removed = 0
    for post_id in sorted(community.get("post_ids") or ()):
        try:
            removed += delete_post(post_id)
        except NotFound:
            # Already gone as part of another subtree, or a dangling reference
            logger.info("community %s post %s already deleted", community_id, post_id)

    for user_id in sorted(community.get("member_ids") or ()):
        _unlink_user(user_id, community_id)

    with storage_errors("delete community"):
        T.communities.delete_item(Key={"community_id": community_id})
    logger.info("community %s deleted (%d posts removed)", community_id, removed)
    return removed


def _link_member(community_id: str, user_id: str) -> None:
    with storage_errors("add community member"):
        T.communities.update_item(
            Key={"community_id": community_id},
            UpdateExpression="ADD member_ids :u",
            ExpressionAttributeValues={":u": {user_id}},
        )
        T.users.update_item(
            Key={"user_id": user_id},
            UpdateExpression="ADD community_ids :c",
            ExpressionAttributeValues={":c": {community_id}},
        )


def _unlink_user(user_id: str, community_id: str) -> None:
    try:
        with storage_errors("remove community from user"):
            T.users.update_item(
                Key={"user_id": user_id},
                UpdateExpression="DELETE community_ids :c",
                ConditionExpression="attribute_exists(user_id)",
                ExpressionAttributeValues={":c": {community_id}},
            )
    except ClientError as exc:
        if not is_conditional_failure(exc):
            raise
        logger.info("member %s of community %s has no user record", user_id, community_id)


def add_member(external_id: str, user_id: str) -> Dict[str, Any]:
    community = get_community_by_external_id(external_id)
    get_user(user_id)
    _link_member(community["community_id"], user_id)
    return get_community(community["community_id"])


def remove_member(external_id: str, user_id: str) -> Dict[str, Any]:
    community = get_community_by_external_id(external_id)
    community_id = community["community_id"]
    with storage_errors("remove community member"):
        T.communities.update_item(
            Key={"community_id": community_id},
            UpdateExpression="DELETE member_ids :u",
            ExpressionAttributeValues={":u": {user_id}},
        )
    _unlink_user(user_id, community_id)
    return get_community(community_id)


def community_summary(item: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": item["community_id"],
        "external_id": item.get("external_id"),
        "username": item.get("username"),
        "name": item.get("name"),
        "image": item.get("image"),
    }


def community_profile(item: Dict[str, Any]) -> Dict[str, Any]:
    return {
        **community_summary(item),
        "bio": item.get("bio"),
        "created_by": item.get("created_by"),
        "member_count": len(item.get("member_ids") or ()),
        "post_count": len(item.get("post_ids") or ()),
    }


def community_summaries(community_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    out: Dict[str, Dict[str, Any]] = {}
    for community_id in sorted({c for c in community_ids if c}):
        item = find_community(community_id)
        if item:
            out[community_id] = community_summary(item)
    return out

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from nerdtalk.core.errors import NotFound, ValidationError, storage_errors
from nerdtalk.core.normalize import clean_str, normalize_username, require_id
from nerdtalk.core.tables import T
from nerdtalk.core.time import now_ts

MAX_NAME_LEN = 80
MAX_BIO_LEN = 1000
MAX_IMAGE_URL_LEN = 512


def find_user(user_id: Optional[str]) -> Optional[Dict[str, Any]]:
    if not user_id:
        return None
    with storage_errors("get user"):
        return T.users.get_item(Key={"user_id": user_id}).get("Item")


def get_user(user_id: Optional[str]) -> Dict[str, Any]:
    item = find_user(user_id)
    if not item:
        raise NotFound("user", user_id)
    return item


def normalize_user_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "username": normalize_username(data.get("username")),
        "name": clean_str(data.get("name"), max_len=MAX_NAME_LEN),
        "image": clean_str(data.get("image"), max_len=MAX_IMAGE_URL_LEN),
        "bio": clean_str(data.get("bio"), max_len=MAX_BIO_LEN),
    }
    if not out["name"]:
        raise ValidationError("name is required")
    return out


def upsert_user(user_id: str, payload: Dict[str, Any], *, onboarded: bool = True) -> Dict[str, Any]:
    """Create or update the profile part of a user record; post and community sets are left alone."""
    user_id = require_id(user_id, "user_id")
    fields = normalize_user_payload(payload)
    ts = now_ts()
    with storage_errors("upsert user"):
        resp = T.users.update_item(
            Key={"user_id": user_id},
            UpdateExpression=(
                "SET username = :u, #n = :n, image = :i, bio = :b, onboarded = :o, "
                "updated_at = :ts, created_at = if_not_exists(created_at, :ts)"
            ),
            ExpressionAttributeNames={"#n": "name"},
            ExpressionAttributeValues={
                ":u": fields["username"],
                ":n": fields["name"],
                ":i": fields["image"],
                ":b": fields["bio"],
                ":o": bool(onboarded),
                ":ts": ts,
            },
            ReturnValues="ALL_NEW",
        )
    return resp.get("Attributes", {})


def user_summary(item: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": item["user_id"],
        "username": item.get("username"),
        "name": item.get("name"),
        "image": item.get("image"),
    }


def user_profile(item: Dict[str, Any]) -> Dict[str, Any]:
    return {
        **user_summary(item),
        "bio": item.get("bio"),
        "onboarded": bool(item.get("onboarded")),
        "post_count": len(item.get("post_ids") or ()),
        "community_ids": sorted(item.get("community_ids") or ()),
    }


def author_summaries(user_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """Summaries keyed by id; ids with no user record are left out."""
    out: Dict[str, Dict[str, Any]] = {}
    for user_id in sorted({u for u in user_ids if u}):
        item = find_user(user_id)
        if item:
            out[user_id] = user_summary(item)
    return out

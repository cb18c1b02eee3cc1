from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from nerdtalk.core.errors import Forbidden, NerdTalkError, NotFound
from nerdtalk.core.normalize import require_id
from nerdtalk.metrics import record_post_created
from nerdtalk.services.cascade import delete_post
from nerdtalk.services.communities import resolve_community_id
from nerdtalk.services.indexes import record_authorship, record_community_post, scrub
from nerdtalk.services.posts import get_post, insert_post, retract_post
from nerdtalk.services.users import get_user

logger = logging.getLogger(__name__)


def _index_or_retract(post: Dict[str, Any], community_id: Optional[str] = None) -> None:
    """
    File a freshly inserted post under its author (and community). If that
    fails the post is taken back out of the store before the error surfaces,
    so a failed create never leaves an unindexed post behind.
    """
    post_id = post["post_id"]
    author_id = post["author_id"]
    authored = False
    try:
        record_authorship(author_id, post_id)
        authored = True
        if community_id:
            record_community_post(community_id, post_id)
    except NerdTalkError as exc:
        logger.warning("indexing post %s failed (%s); retracting it", post_id, exc.detail)
        retract_post(post)
        if authored:
            scrub({post_id}, author_ids={author_id}, community_ids=())
        raise


def create_nerdtalk(text: str, author_id: str, community_ref: Optional[str] = None) -> Dict[str, Any]:
    """
    Start a new thread. community_ref is the organization id the client
    knows; an unknown one degrades to a personal post instead of failing.
    """
    get_user(require_id(author_id, "author_id"))
    community_id = None
    if community_ref:
        try:
            community_id = resolve_community_id(community_ref)
        except NotFound:
            logger.info("community %s not found; posting %s's thread without one", community_ref, author_id)

    post = insert_post(text, author_id, community_id=community_id)
    _index_or_retract(post, community_id)
    record_post_created("thread")
    return post


def add_reply(parent_id: str, text: str, author_id: str) -> Dict[str, Any]:
    get_user(require_id(author_id, "author_id"))
    post = insert_post(text, author_id, parent_id=parent_id)
    _index_or_retract(post)
    record_post_created("reply")
    return post


def delete_nerdtalk(post_id: str, actor_id: str) -> int:
    post = get_post(post_id)
    if post.get("author_id") != actor_id:
        raise Forbidden("Only the author can delete this NerdTalk")
    return delete_post(post_id)

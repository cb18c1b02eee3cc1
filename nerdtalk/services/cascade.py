from __future__ import annotations

import logging

from nerdtalk.metrics import record_cascade_delete
from nerdtalk.services.indexes import scrub
from nerdtalk.services.posts import delete_by_ids, get_post
from nerdtalk.services.tree import collect_descendants

logger = logging.getLogger(__name__)


def delete_post(post_id: str) -> int:
    """
    Delete a post together with every transitive reply and scrub the deleted
    ids from the owning users' and communities' post sets.

    Descendants are enumerated before anything is removed. The store delete
    and the index scrub are separate writes: if the scrub fails the deleted
    posts stay deleted and the error propagates; repeating the call with the
    same id set is safe. Returns the number of post records removed, which
    can under-report when another caller deletes an overlapping subtree at
    the same time.
    """
    root = get_post(post_id)
    descendants = collect_descendants(post_id)

    nodes = [root, *descendants]
    all_ids = {node["post_id"] for node in nodes}
    author_ids = {node["author_id"] for node in nodes if node.get("author_id")}
    community_ids = {node["community_id"] for node in nodes if node.get("community_id")}

    logger.info(
        "cascade delete of %s: %d posts, %d authors, %d communities",
        post_id,
        len(all_ids),
        len(author_ids),
        len(community_ids),
    )

    deleted = delete_by_ids(all_ids)
    scrub(all_ids, author_ids=author_ids, community_ids=community_ids)

    record_cascade_delete(deleted)
    logger.info("cascade delete of %s removed %d posts", post_id, deleted)
    return deleted

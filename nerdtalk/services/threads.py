"""
Read-side joins: thread view, feed page and owner listings.

The thread view is deliberately depth-bounded (root, replies, replies to
replies). Anything deeper is fetched by materializing a reply as its own
root. Nothing here writes, so abandoning a call halfway is harmless.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from nerdtalk.metrics import record_dangling_ref
from nerdtalk.services.communities import community_summaries, get_community
from nerdtalk.services.posts import count_direct_children, find_post, get_post, get_posts, list_top_level
from nerdtalk.services.users import author_summaries, get_user

logger = logging.getLogger(__name__)


def _node(
    post: Dict[str, Any],
    authors: Dict[str, Dict[str, Any]],
    *,
    communities: Optional[Dict[str, Dict[str, Any]]] = None,
    children: Optional[List[Dict[str, Any]]] = None,
    replies: Optional[int] = None,
) -> Dict[str, Any]:
    if replies is None:
        # Leaf of the view: count live replies; the children log keeps ids of deleted ones
        replies = count_direct_children(post["post_id"]) if post.get("children") else 0
    node = {
        "id": post["post_id"],
        "text": post.get("text", ""),
        "author_id": post.get("author_id"),
        "author": authors.get(post.get("author_id")),
        "created_at": post.get("created_at"),
        "parent_id": post.get("parent_id"),
        "reply_count": replies,
        "children": children or [],
    }
    if communities is not None:
        node["community"] = communities.get(post.get("community_id"))
    return node


def _replies(post: Dict[str, Any]) -> List[Dict[str, Any]]:
    # The children log may hold ids of deleted subtrees; get_posts skips them.
    return get_posts(post.get("children") or [])


def materialize(root_id: str) -> Dict[str, Any]:
    root = get_post(root_id)
    replies = _replies(root)
    nested = {reply["post_id"]: _replies(reply) for reply in replies}

    author_ids = {root.get("author_id")}
    author_ids.update(r.get("author_id") for r in replies)
    for grand in nested.values():
        author_ids.update(g.get("author_id") for g in grand)
    authors = author_summaries(author_ids)
    communities = community_summaries([root.get("community_id")])

    children = [
        _node(
            reply,
            authors,
            children=[_node(g, authors) for g in nested[reply["post_id"]]],
            replies=len(nested[reply["post_id"]]),
        )
        for reply in replies
    ]
    return _node(root, authors, communities=communities, children=children, replies=len(replies))


def _with_replies(posts: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    replies = {post["post_id"]: _replies(post) for post in posts}
    author_ids = {p.get("author_id") for p in posts}
    for rs in replies.values():
        author_ids.update(r.get("author_id") for r in rs)
    authors = author_summaries(author_ids)
    communities = community_summaries(p.get("community_id") for p in posts)
    return [
        _node(
            post,
            authors,
            communities=communities,
            children=[_node(r, authors) for r in replies[post["post_id"]]],
            replies=len(replies[post["post_id"]]),
        )
        for post in posts
    ]


def fetch_feed(page: int, page_size: int) -> Dict[str, Any]:
    posts, has_more = list_top_level(page, page_size)
    return {
        "items": _with_replies(posts),
        "page": page,
        "page_size": page_size,
        "has_more": has_more,
    }


def _resolve_refs(post_ids: Iterable[str], *, owner: str, owner_id: str) -> List[Dict[str, Any]]:
    posts: List[Dict[str, Any]] = []
    for post_id in sorted(post_ids):
        post = find_post(post_id)
        if not post:
            record_dangling_ref(owner)
            logger.warning("%s %s references missing post %s; skipping", owner, owner_id, post_id)
            continue
        posts.append(post)
    posts.sort(key=lambda p: p.get("created_at") or "", reverse=True)
    return posts


def list_user_posts(user_id: str) -> List[Dict[str, Any]]:
    user = get_user(user_id)
    posts = _resolve_refs(user.get("post_ids") or (), owner="user", owner_id=user_id)
    return _with_replies(posts)


def list_community_posts(community_id: str) -> List[Dict[str, Any]]:
    community = get_community(community_id)
    posts = _resolve_refs(community.get("post_ids") or (), owner="community", owner_id=community_id)
    return _with_replies(posts)

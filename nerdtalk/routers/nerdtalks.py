from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request

from nerdtalk.auth.deps import require_onboarded_user
from nerdtalk.core.settings import S
from nerdtalk.models import CreateNerdTalkReq, CreatedNerdTalkResp, DeleteResp, FeedResp, NerdTalkOut, PostListResp, ReplyReq
from nerdtalk.services.audit import audit_event
from nerdtalk.services.nerdtalks import add_reply, create_nerdtalk, delete_nerdtalk
from nerdtalk.services.threads import fetch_feed, list_community_posts, list_user_posts, materialize

router = APIRouter(tags=["nerdtalks"])


def _created(post: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": post["post_id"],
        "text": post["text"],
        "author_id": post["author_id"],
        "community_id": post.get("community_id"),
        "parent_id": post.get("parent_id"),
        "created_at": post["created_at"],
    }


@router.get("/nerdtalks", response_model=FeedResp)
async def ui_list_nerdtalks(
    page: int = Query(default=1, ge=1),
    page_size: Optional[int] = Query(default=None, ge=1),
):
    return fetch_feed(page, page_size or S.default_page_size)


@router.post("/nerdtalks", response_model=CreatedNerdTalkResp, status_code=201)
async def ui_create_nerdtalk(req: Request, body: CreateNerdTalkReq, ctx=Depends(require_onboarded_user)):
    post = create_nerdtalk(body.text, ctx["user_id"], body.community_id)
    audit_event("nerdtalk_create", ctx["user_id"], req, post_id=post["post_id"])
    return _created(post)


@router.get("/nerdtalks/{post_id}", response_model=NerdTalkOut)
async def ui_get_thread(post_id: str):
    return materialize(post_id)


@router.post("/nerdtalks/{post_id}/replies", response_model=CreatedNerdTalkResp, status_code=201)
async def ui_reply(req: Request, post_id: str, body: ReplyReq, ctx=Depends(require_onboarded_user)):
    post = add_reply(post_id, body.text, ctx["user_id"])
    audit_event("nerdtalk_reply", ctx["user_id"], req, post_id=post["post_id"], parent_id=post_id)
    return _created(post)


@router.delete("/nerdtalks/{post_id}", response_model=DeleteResp)
async def ui_delete_nerdtalk(req: Request, post_id: str, ctx=Depends(require_onboarded_user)):
    count = delete_nerdtalk(post_id, ctx["user_id"])
    audit_event("nerdtalk_delete", ctx["user_id"], req, post_id=post_id, count=count)
    return {"deleted": True, "count": count}


@router.get("/users/{user_id}/nerdtalks", response_model=PostListResp)
async def ui_list_user_nerdtalks(user_id: str):
    return {"items": list_user_posts(user_id)}


@router.get("/communities/{community_id}/nerdtalks", response_model=PostListResp)
async def ui_list_community_nerdtalks(community_id: str):
    return {"items": list_community_posts(community_id)}

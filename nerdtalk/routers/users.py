from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from nerdtalk.auth.deps import get_authenticated_user_sub, require_user
from nerdtalk.models import UserOut, UserProfileIn
from nerdtalk.services.audit import audit_event
from nerdtalk.services.users import get_user, upsert_user, user_profile

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserOut)
async def ui_get_me(ctx=Depends(require_user)):
    return user_profile(ctx["user"])


@router.put("/me", response_model=UserOut)
async def ui_onboard(req: Request, body: UserProfileIn, user_sub: str = Depends(get_authenticated_user_sub)):
    user = upsert_user(user_sub, body.model_dump(), onboarded=True)
    audit_event("user_onboard", user_sub, req)
    return user_profile(user)


@router.get("/{user_id}", response_model=UserOut)
async def ui_get_user(user_id: str):
    return user_profile(get_user(user_id))

from __future__ import annotations

from fastapi import APIRouter

from nerdtalk.models import CommunityOut
from nerdtalk.services.communities import community_profile, get_community_by_external_id

router = APIRouter(prefix="/communities", tags=["communities"])


@router.get("/{external_id}", response_model=CommunityOut)
async def ui_get_community(external_id: str):
    return community_profile(get_community_by_external_id(external_id))

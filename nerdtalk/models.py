from __future__ import annotations

from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

class CreateNerdTalkReq(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    text: str = Field(validation_alias=AliasChoices("text", "nerdtalk"))
    # Organization id from the identity provider; null posts to the personal account
    community_id: Optional[str] = None

class ReplyReq(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    text: str = Field(validation_alias=AliasChoices("text", "nerdtalk"))

class AuthorSummary(BaseModel):
    id: str
    username: Optional[str] = None
    name: Optional[str] = None
    image: Optional[str] = None

class CommunitySummary(BaseModel):
    id: str
    external_id: Optional[str] = None
    username: Optional[str] = None
    name: Optional[str] = None
    image: Optional[str] = None

class NerdTalkOut(BaseModel):
    id: str
    text: str
    author_id: Optional[str] = None
    author: Optional[AuthorSummary] = None
    community: Optional[CommunitySummary] = None
    created_at: Optional[str] = None
    parent_id: Optional[str] = None
    reply_count: int = 0
    children: List["NerdTalkOut"] = Field(default_factory=list)

class CreatedNerdTalkResp(BaseModel):
    id: str
    text: str
    author_id: str
    community_id: Optional[str] = None
    parent_id: Optional[str] = None
    created_at: str

class FeedResp(BaseModel):
    items: List[NerdTalkOut] = Field(default_factory=list)
    page: int
    page_size: int
    has_more: bool

class PostListResp(BaseModel):
    items: List[NerdTalkOut] = Field(default_factory=list)

class DeleteResp(BaseModel):
    deleted: bool
    count: int

class UserProfileIn(BaseModel):
    username: str
    name: str
    image: Optional[str] = None
    bio: Optional[str] = None

class UserOut(BaseModel):
    id: str
    username: Optional[str] = None
    name: Optional[str] = None
    image: Optional[str] = None
    bio: Optional[str] = None
    onboarded: bool = False
    post_count: int = 0
    community_ids: List[str] = Field(default_factory=list)

class CommunityOut(BaseModel):
    id: str
    external_id: Optional[str] = None
    username: Optional[str] = None
    name: Optional[str] = None
    image: Optional[str] = None
    bio: Optional[str] = None
    created_by: Optional[str] = None
    member_count: int = 0
    post_count: int = 0

NerdTalkOut.model_rebuild()

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

ReactionType = Literal["LIKE", "LOVE", "HAHA", "WOW", "SAD", "ANGRY"]
Visibility = Literal["PUBLIC", "PRIVATE"]
SortOrder = Literal["asc", "desc"]


class PostMediaRequest(BaseModel):
    public_id: str = Field(min_length=1, max_length=255)
    url: str = Field(min_length=1, max_length=2048)


class CreatePostRequest(BaseModel):
    content: str = Field(min_length=1, max_length=5000)
    visibility: Visibility = "PUBLIC"
    media_urls: list[PostMediaRequest] = Field(default_factory=list, max_length=10)


class PostCommentRequest(BaseModel):
    comment: str = Field(min_length=1, max_length=2000)
    parent_comment_id: UUID | None = None


class ReactionRequest(BaseModel):
    reaction_type: ReactionType | None = None


class AuthorPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    first_name: str
    last_name: str
    photo: str | None = None


class PostMediaResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    public_id: str
    url: str


class ReactionResponse(BaseModel):
    reaction_type: str
    author: AuthorPublic
    created_at: datetime


class CommentResponse(BaseModel):
    id: UUID
    parent_id: UUID | None
    content: str
    author: AuthorPublic
    created_at: datetime
    reactions: list[ReactionResponse]
    replies: list[CommentResponse] | None = None
    total_reactions: int
    total_replies: int


class PostResponse(BaseModel):
    id: UUID
    content: str
    visibility: str
    author_id: UUID
    author: AuthorPublic
    media_urls: list[PostMediaResponse]
    created_at: datetime
    updated_at: datetime
    reactions: list[ReactionResponse]
    comments: list[CommentResponse]
    total_reactions: int
    total_comments: int


class CursorMeta(BaseModel):
    has_next: bool
    next_cursor: UUID | None = None


class PostListResponse(BaseModel):
    items: list[PostResponse]
    meta: CursorMeta


class CommentListResponse(BaseModel):
    items: list[CommentResponse]
    meta: CursorMeta


class ReactionListResponse(BaseModel):
    items: list[ReactionResponse]
    meta: CursorMeta

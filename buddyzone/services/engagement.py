"""Viewer-aware shaping of post trees.

A post tree arrives from the data layer with every preview list (reactions,
comments, replies) already ordered newest first and bounded. The aggregator
caps each list and makes sure the viewer's own item is one of the survivors,
fetching the viewer's reactions out-of-band when the stored preview missed
them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import TypeVar
from uuid import UUID

from buddyzone.core.config import settings
from buddyzone.schemas.post import (
    AuthorPublic,
    CommentResponse,
    PostMediaResponse,
    PostResponse,
    ReactionResponse,
)

T = TypeVar("T")


@dataclass(slots=True)
class RawAuthor:
    id: UUID
    username: str
    first_name: str
    last_name: str
    photo: str | None = None


@dataclass(slots=True)
class RawReaction:
    target_id: UUID
    author: RawAuthor
    reaction_type: str
    created_at: datetime


@dataclass(slots=True)
class RawMedia:
    id: UUID
    public_id: str
    url: str


@dataclass(slots=True)
class RawComment:
    id: UUID
    parent_id: UUID | None
    content: str
    author: RawAuthor
    created_at: datetime
    total_reactions: int
    total_replies: int
    reactions: list[RawReaction] = field(default_factory=list)
    replies: list[RawComment] = field(default_factory=list)


@dataclass(slots=True)
class RawPost:
    id: UUID
    content: str
    visibility: str
    author: RawAuthor
    created_at: datetime
    updated_at: datetime
    total_reactions: int
    total_comments: int
    media: list[RawMedia] = field(default_factory=list)
    reactions: list[RawReaction] = field(default_factory=list)
    comments: list[RawComment] = field(default_factory=list)


class EngagementLookup(ABC):
    """Batched reads of the viewer's own reactions, keyed by target id."""

    @abstractmethod
    def viewer_post_reactions(self, *, post_ids: list[UUID], viewer_id: UUID) -> dict[UUID, RawReaction]:
        raise NotImplementedError

    @abstractmethod
    def viewer_comment_reactions(self, *, comment_ids: list[UUID], viewer_id: UUID) -> dict[UUID, RawReaction]:
        raise NotImplementedError


def prioritize_user_item(items: Sequence[T], limit: int, is_user_item: Callable[[T], bool]) -> list[T]:
    """Cap ``items`` at ``limit`` while keeping the first item owned by the viewer.

    ``items`` must already be ordered newest first. Without a viewer item this
    is a plain head slice. With one, the viewer item plus the ``limit - 1``
    freshest other items are re-sorted by ``created_at`` descending; the sort
    is stable so equal timestamps keep their input order.
    """
    if not items:
        return []

    user_index = next((index for index, item in enumerate(items) if is_user_item(item)), None)
    if user_index is None:
        return list(items[:limit])

    others = [item for index, item in enumerate(items) if index != user_index][: limit - 1]
    picked = [items[user_index], *others]
    picked.sort(key=lambda item: item.created_at, reverse=True)
    return picked


def merge_viewer_item(items: Sequence[T], fetched: T | None, is_user_item: Callable[[T], bool]) -> list[T]:
    if fetched is None or any(is_user_item(item) for item in items):
        return list(items)
    return [*items, fetched]


class EngagementAggregator:
    def __init__(
        self,
        lookup: EngagementLookup,
        *,
        reaction_limit: int | None = None,
        comment_limit: int | None = None,
        reply_limit: int | None = None,
    ) -> None:
        self.lookup = lookup
        self.reaction_limit = reaction_limit or settings.reaction_preview_limit
        self.comment_limit = comment_limit or settings.comment_preview_limit
        self.reply_limit = reply_limit or settings.reply_preview_limit

    def aggregate_post(self, post: RawPost, viewer_id: UUID) -> PostResponse:
        return self.aggregate_posts([post], viewer_id)[0]

    def aggregate_posts(self, posts: Sequence[RawPost], viewer_id: UUID) -> list[PostResponse]:
        if not posts:
            return []

        is_mine = self._owned_by(viewer_id)
        comments = [comment for post in posts for comment in post.comments]
        replies = [reply for comment in comments for reply in comment.replies]

        post_reactions = self._lookup_posts(posts, viewer_id, is_mine)
        comment_reactions = self._lookup_comments(comments, viewer_id, is_mine)
        reply_reactions = self._lookup_comments(replies, viewer_id, is_mine)
        viewer_reactions = {**comment_reactions, **reply_reactions}

        return [
            self._build_post(
                post,
                is_mine=is_mine,
                post_reaction=post_reactions.get(post.id),
                viewer_reactions=viewer_reactions,
            )
            for post in posts
        ]

    def aggregate_comments(self, comments: Sequence[RawComment], viewer_id: UUID) -> list[CommentResponse]:
        """Shape a page of top-level comments without capping the page itself."""
        if not comments:
            return []

        is_mine = self._owned_by(viewer_id)
        replies = [reply for comment in comments for reply in comment.replies]
        comment_reactions = self._lookup_comments(comments, viewer_id, is_mine)
        reply_reactions = self._lookup_comments(replies, viewer_id, is_mine)
        viewer_reactions = {**comment_reactions, **reply_reactions}
        return [
            self._build_comment(comment, is_mine=is_mine, viewer_reactions=viewer_reactions)
            for comment in comments
        ]

    @staticmethod
    def _owned_by(viewer_id: UUID) -> Callable[[RawReaction | RawComment], bool]:
        return lambda item: item.author.id == viewer_id

    def _lookup_posts(self, posts, viewer_id, is_mine) -> dict[UUID, RawReaction]:
        missing = [post.id for post in posts if not any(is_mine(reaction) for reaction in post.reactions)]
        if not missing:
            return {}
        return self.lookup.viewer_post_reactions(post_ids=missing, viewer_id=viewer_id)

    def _lookup_comments(self, comments, viewer_id, is_mine) -> dict[UUID, RawReaction]:
        missing = [
            comment.id for comment in comments if not any(is_mine(reaction) for reaction in comment.reactions)
        ]
        if not missing:
            return {}
        return self.lookup.viewer_comment_reactions(comment_ids=missing, viewer_id=viewer_id)

    def _build_post(
        self,
        post: RawPost,
        *,
        is_mine,
        post_reaction: RawReaction | None,
        viewer_reactions: dict[UUID, RawReaction],
    ) -> PostResponse:
        reactions = prioritize_user_item(
            merge_viewer_item(post.reactions, post_reaction, is_mine),
            self.reaction_limit,
            is_mine,
        )
        comments = prioritize_user_item(post.comments, self.comment_limit, is_mine)
        return PostResponse(
            id=post.id,
            content=post.content,
            visibility=post.visibility,
            author_id=post.author.id,
            author=AuthorPublic.model_validate(post.author),
            media_urls=[PostMediaResponse.model_validate(media) for media in post.media],
            created_at=post.created_at,
            updated_at=post.updated_at,
            reactions=[self._build_reaction(reaction) for reaction in reactions],
            comments=[
                self._build_comment(comment, is_mine=is_mine, viewer_reactions=viewer_reactions)
                for comment in comments
            ],
            total_reactions=post.total_reactions,
            total_comments=post.total_comments,
        )

    def _build_comment(
        self,
        comment: RawComment,
        *,
        is_mine,
        viewer_reactions: dict[UUID, RawReaction],
        is_reply: bool = False,
    ) -> CommentResponse:
        reactions = prioritize_user_item(
            merge_viewer_item(comment.reactions, viewer_reactions.get(comment.id), is_mine),
            self.reaction_limit,
            is_mine,
        )
        replies = None
        if not is_reply:
            replies = [
                self._build_comment(reply, is_mine=is_mine, viewer_reactions=viewer_reactions, is_reply=True)
                for reply in prioritize_user_item(comment.replies, self.reply_limit, is_mine)
            ]
        return CommentResponse(
            id=comment.id,
            parent_id=comment.parent_id,
            content=comment.content,
            author=AuthorPublic.model_validate(comment.author),
            created_at=comment.created_at,
            reactions=[self._build_reaction(reaction) for reaction in reactions],
            replies=replies,
            total_reactions=comment.total_reactions,
            total_replies=comment.total_replies,
        )

    @staticmethod
    def _build_reaction(reaction: RawReaction) -> ReactionResponse:
        return ReactionResponse(
            reaction_type=reaction.reaction_type,
            author=AuthorPublic.model_validate(reaction.author),
            created_at=reaction.created_at,
        )

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from buddyzone.core.config import settings
from buddyzone.models.comment import Comment
from buddyzone.models.post import ALLOWED_VISIBILITY, Post
from buddyzone.models.reaction import CommentReaction, PostReaction
from buddyzone.models.user import User
from buddyzone.repositories.post_repo import PostRepository
from buddyzone.schemas.post import (
    AuthorPublic,
    CommentListResponse,
    CreatePostRequest,
    CursorMeta,
    PostCommentRequest,
    PostListResponse,
    PostResponse,
    ReactionListResponse,
    ReactionRequest,
    ReactionResponse,
)
from buddyzone.services.engagement import (
    EngagementAggregator,
    EngagementLookup,
    RawAuthor,
    RawComment,
    RawMedia,
    RawPost,
    RawReaction,
)

logger = logging.getLogger(__name__)

ALLOWED_ORDER_BY = {"created_at", "updated_at"}
POST_NOT_FOUND = "Post not found or you are not authorized to access it"


def _raw_author(user: User) -> RawAuthor:
    return RawAuthor(
        id=user.id,
        username=user.username,
        first_name=user.first_name,
        last_name=user.last_name,
        photo=user.photo,
    )


def _raw_reaction(row: PostReaction | CommentReaction, target_id: UUID) -> RawReaction:
    return RawReaction(
        target_id=target_id,
        author=_raw_author(row.author),
        reaction_type=row.reaction_type,
        created_at=row.created_at,
    )


def _with_viewer_rows(previews: dict, viewer_rows: dict) -> dict:
    """Append each viewer row to its group's preview unless it is already there."""
    for group_id, row in viewer_rows.items():
        rows = previews.setdefault(group_id, [])
        if all(existing.id != row.id for existing in rows):
            rows.append(row)
    return previews


def _page_meta(rows: list, limit: int) -> tuple[list, CursorMeta]:
    has_next = len(rows) > limit
    next_cursor = rows[limit].id if has_next else None
    return rows[:limit], CursorMeta(has_next=has_next, next_cursor=next_cursor)


class RepositoryEngagementLookup(EngagementLookup):
    def __init__(self, post_repo: PostRepository) -> None:
        self.post_repo = post_repo

    def viewer_post_reactions(self, *, post_ids: list[UUID], viewer_id: UUID) -> dict[UUID, RawReaction]:
        rows = self.post_repo.viewer_post_reactions(post_ids, viewer_id)
        return {row.post_id: _raw_reaction(row, row.post_id) for row in rows}

    def viewer_comment_reactions(self, *, comment_ids: list[UUID], viewer_id: UUID) -> dict[UUID, RawReaction]:
        rows = self.post_repo.viewer_comment_reactions(comment_ids, viewer_id)
        return {row.comment_id: _raw_reaction(row, row.comment_id) for row in rows}


class PostService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.post_repo = PostRepository(db)
        self.aggregator = EngagementAggregator(RepositoryEngagementLookup(self.post_repo))

    def create_post(self, *, user: User, payload: CreatePostRequest) -> PostResponse:
        content = payload.content.strip()
        if not content:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Post content cannot be empty")
        if payload.visibility not in ALLOWED_VISIBILITY:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unsupported post visibility")

        media: list[tuple[str, str]] = []
        seen_public_ids: set[str] = set()
        for item in payload.media_urls:
            public_id = item.public_id.strip()
            url = item.url.strip()
            if not public_id or not url:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Media entries need public_id and url")
            if public_id in seen_public_ids:
                continue
            seen_public_ids.add(public_id)
            media.append((public_id, url))

        post = self.post_repo.create_post(
            author_id=user.id,
            content=content,
            visibility=payload.visibility,
            media=media,
        )
        self.db.commit()
        logger.info("post created", extra={"post_id": str(post.id), "author_id": str(user.id)})
        return self.get_post(user=user, post_id=post.id)

    def list_posts(
        self,
        *,
        user: User,
        cursor: UUID | None,
        limit: int,
        order: str,
        order_by: str,
        username: str | None = None,
    ) -> PostListResponse:
        if order_by not in ALLOWED_ORDER_BY:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unsupported order_by field")

        rows = self.post_repo.list_visible_posts(
            viewer_id=user.id,
            username=username,
            cursor_row=self._resolve_cursor(Post, cursor),
            limit=limit,
            order_by=order_by,
            descending=order == "desc",
        )
        posts, meta = _page_meta(rows, limit)
        items = self.aggregator.aggregate_posts(self._load_raw_posts(posts, viewer_id=user.id), user.id)
        return PostListResponse(items=items, meta=meta)

    def get_post(self, *, user: User, post_id: UUID) -> PostResponse:
        post = self._get_visible_post_or_404(user=user, post_id=post_id)
        raw_posts = self._load_raw_posts([post], viewer_id=user.id)
        return self.aggregator.aggregate_post(raw_posts[0], user.id)

    def comment_on_post(self, *, user: User, post_id: UUID, payload: PostCommentRequest) -> PostResponse:
        self._get_visible_post_or_404(user=user, post_id=post_id)
        content = payload.comment.strip()
        if not content:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Comment cannot be empty")

        if payload.parent_comment_id is not None:
            parent = self.post_repo.get_post_comment(post_id=post_id, comment_id=payload.parent_comment_id)
            if not parent:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Parent comment not found")
            if parent.parent_id is not None:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Replies cannot be replied to")

        comment = self.post_repo.create_comment(
            post_id=post_id,
            author_id=user.id,
            content=content,
            parent_id=payload.parent_comment_id,
        )
        self.db.commit()
        logger.info("comment created", extra={"post_id": str(post_id), "comment_id": str(comment.id)})
        return self.get_post(user=user, post_id=post_id)

    def react_to_post(self, *, user: User, post_id: UUID, payload: ReactionRequest) -> PostResponse:
        self._get_visible_post_or_404(user=user, post_id=post_id)
        if payload.reaction_type is None:
            self.post_repo.delete_post_reaction(post_id=post_id, author_id=user.id)
        else:
            self.post_repo.upsert_post_reaction(post_id=post_id, author_id=user.id, reaction_type=payload.reaction_type)
        self.db.commit()
        return self.get_post(user=user, post_id=post_id)

    def react_to_comment(
        self,
        *,
        user: User,
        post_id: UUID,
        comment_id: UUID,
        payload: ReactionRequest,
    ) -> PostResponse:
        self._get_visible_post_or_404(user=user, post_id=post_id)
        if not self.post_repo.get_post_comment(post_id=post_id, comment_id=comment_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")

        if payload.reaction_type is None:
            self.post_repo.delete_comment_reaction(comment_id=comment_id, author_id=user.id)
        else:
            self.post_repo.upsert_comment_reaction(
                comment_id=comment_id,
                author_id=user.id,
                reaction_type=payload.reaction_type,
            )
        self.db.commit()
        return self.get_post(user=user, post_id=post_id)

    def list_comments(
        self,
        *,
        user: User,
        post_id: UUID,
        cursor: UUID | None,
        limit: int,
        order: str,
    ) -> CommentListResponse:
        self._get_visible_post_or_404(user=user, post_id=post_id)
        rows = self.post_repo.list_top_level_comments(
            post_id=post_id,
            cursor_row=self._resolve_cursor(Comment, cursor),
            limit=limit,
            descending=order == "desc",
        )
        comments, meta = _page_meta(rows, limit)
        raw_comments = self._load_raw_comments({post_id: comments}, viewer_id=user.id).get(post_id, [])
        return CommentListResponse(items=self.aggregator.aggregate_comments(raw_comments, user.id), meta=meta)

    def list_post_reactions(
        self,
        *,
        user: User,
        post_id: UUID,
        cursor: UUID | None,
        limit: int,
        order: str,
    ) -> ReactionListResponse:
        self._get_visible_post_or_404(user=user, post_id=post_id)
        rows = self.post_repo.list_post_reactions(
            post_id=post_id,
            cursor_row=self._resolve_cursor(PostReaction, cursor),
            limit=limit,
            descending=order == "desc",
        )
        reactions, meta = _page_meta(rows, limit)
        return ReactionListResponse(items=[self._reaction_response(row) for row in reactions], meta=meta)

    def list_comment_reactions(
        self,
        *,
        user: User,
        comment_id: UUID,
        cursor: UUID | None,
        limit: int,
        order: str,
    ) -> ReactionListResponse:
        comment = self.post_repo.get_row(Comment, comment_id)
        if not comment:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
        self._get_visible_post_or_404(user=user, post_id=comment.post_id)

        rows = self.post_repo.list_comment_reactions(
            comment_id=comment_id,
            cursor_row=self._resolve_cursor(CommentReaction, cursor),
            limit=limit,
            descending=order == "desc",
        )
        reactions, meta = _page_meta(rows, limit)
        return ReactionListResponse(items=[self._reaction_response(row) for row in reactions], meta=meta)

    def _get_visible_post_or_404(self, *, user: User, post_id: UUID) -> Post:
        post = self.post_repo.get_visible_post(post_id=post_id, viewer_id=user.id)
        if not post:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=POST_NOT_FOUND)
        return post

    def _resolve_cursor(self, model, cursor: UUID | None):
        if cursor is None:
            return None
        row = self.post_repo.get_row(model, cursor)
        if not row:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid cursor")
        return row

    @staticmethod
    def _reaction_response(row: PostReaction | CommentReaction) -> ReactionResponse:
        return ReactionResponse(
            reaction_type=row.reaction_type,
            author=AuthorPublic.model_validate(row.author),
            created_at=row.created_at,
        )

    def _load_raw_posts(self, posts: list[Post], *, viewer_id: UUID) -> list[RawPost]:
        if not posts:
            return []

        post_ids = [post.id for post in posts]
        comments_by_post = _with_viewer_rows(
            self.post_repo.preview_comments(post_ids, limit=settings.comment_preview_limit),
            self.post_repo.latest_viewer_comments(post_ids, viewer_id),
        )
        raw_comments = self._load_raw_comments(comments_by_post, viewer_id=viewer_id)
        reactions = self.post_repo.preview_post_reactions(post_ids, limit=settings.reaction_fetch_limit)
        reaction_counts = self.post_repo.count_post_reactions(post_ids)
        comment_counts = self.post_repo.count_top_level_comments(post_ids)

        return [
            RawPost(
                id=post.id,
                content=post.content,
                visibility=post.visibility,
                author=_raw_author(post.author),
                created_at=post.created_at,
                updated_at=post.updated_at,
                total_reactions=reaction_counts.get(post.id, 0),
                total_comments=comment_counts.get(post.id, 0),
                media=[RawMedia(id=media.id, public_id=media.public_id, url=media.url) for media in post.media],
                reactions=[_raw_reaction(row, post.id) for row in reactions.get(post.id, [])],
                comments=raw_comments.get(post.id, []),
            )
            for post in posts
        ]

    def _load_raw_comments(
        self,
        comments_by_post: dict[UUID, list[Comment]],
        *,
        viewer_id: UUID,
    ) -> dict[UUID, list[RawComment]]:
        comment_ids = [comment.id for rows in comments_by_post.values() for comment in rows]
        if not comment_ids:
            return {}

        replies_by_comment = _with_viewer_rows(
            self.post_repo.preview_replies(comment_ids, limit=settings.reply_preview_limit),
            self.post_repo.latest_viewer_replies(comment_ids, viewer_id),
        )
        node_ids = comment_ids + [reply.id for rows in replies_by_comment.values() for reply in rows]
        reactions = self.post_repo.preview_comment_reactions(node_ids, limit=settings.reaction_fetch_limit)
        reaction_counts = self.post_repo.count_comment_reactions(node_ids)
        reply_counts = self.post_repo.count_replies(node_ids)

        def build(comment: Comment, replies: list[RawComment]) -> RawComment:
            return RawComment(
                id=comment.id,
                parent_id=comment.parent_id,
                content=comment.content,
                author=_raw_author(comment.author),
                created_at=comment.created_at,
                total_reactions=reaction_counts.get(comment.id, 0),
                total_replies=reply_counts.get(comment.id, 0),
                reactions=[_raw_reaction(row, comment.id) for row in reactions.get(comment.id, [])],
                replies=replies,
            )

        return {
            post_id: [
                build(comment, [build(reply, []) for reply in replies_by_comment.get(comment.id, [])])
                for comment in rows
            ]
            for post_id, rows in comments_by_post.items()
        }

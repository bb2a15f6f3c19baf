import uuid
from collections import defaultdict
from datetime import datetime, timezone

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.orm import Session, joinedload, selectinload

from buddyzone.models.comment import Comment
from buddyzone.models.post import VISIBILITY_PUBLIC, Post, PostMedia
from buddyzone.models.reaction import CommentReaction, PostReaction
from buddyzone.models.user import User


def apply_cursor(stmt, model, *, sort_column, cursor_row, descending: bool):
    """Keyset filter that keeps the cursor row itself on the page."""
    if cursor_row is not None:
        cursor_value = getattr(cursor_row, sort_column.key)
        if descending:
            stmt = stmt.where(
                or_(sort_column < cursor_value, and_(sort_column == cursor_value, model.id <= cursor_row.id))
            )
        else:
            stmt = stmt.where(
                or_(sort_column > cursor_value, and_(sort_column == cursor_value, model.id >= cursor_row.id))
            )
    if descending:
        return stmt.order_by(sort_column.desc(), model.id.desc())
    return stmt.order_by(sort_column.asc(), model.id.asc())


class PostRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_row(self, model, row_id: uuid.UUID):
        return self.db.get(model, row_id)

    def create_post(
        self,
        *,
        author_id: uuid.UUID,
        content: str,
        visibility: str,
        media: list[tuple[str, str]],
    ) -> Post:
        post = Post(author_id=author_id, content=content, visibility=visibility)
        post.media = [PostMedia(public_id=public_id, url=url) for public_id, url in media]
        self.db.add(post)
        self.db.flush()
        return post

    def _visible_posts(self, viewer_id: uuid.UUID):
        return (
            select(Post)
            .options(joinedload(Post.author), selectinload(Post.media))
            .where(or_(Post.author_id == viewer_id, Post.visibility == VISIBILITY_PUBLIC))
        )

    def get_visible_post(self, *, post_id: uuid.UUID, viewer_id: uuid.UUID) -> Post | None:
        return self.db.scalar(self._visible_posts(viewer_id).where(Post.id == post_id))

    def list_visible_posts(
        self,
        *,
        viewer_id: uuid.UUID,
        username: str | None = None,
        cursor_row: Post | None = None,
        limit: int,
        order_by: str = "created_at",
        descending: bool = True,
    ) -> list[Post]:
        stmt = self._visible_posts(viewer_id)
        if username is not None:
            stmt = stmt.join(User, User.id == Post.author_id).where(User.username == username)
        stmt = apply_cursor(
            stmt,
            Post,
            sort_column=getattr(Post, order_by),
            cursor_row=cursor_row,
            descending=descending,
        )
        return list(self.db.scalars(stmt.limit(limit + 1)).unique())

    def get_post_comment(self, *, post_id: uuid.UUID, comment_id: uuid.UUID) -> Comment | None:
        return self.db.scalar(select(Comment).where(Comment.id == comment_id, Comment.post_id == post_id))

    def create_comment(
        self,
        *,
        post_id: uuid.UUID,
        author_id: uuid.UUID,
        content: str,
        parent_id: uuid.UUID | None,
    ) -> Comment:
        comment = Comment(post_id=post_id, author_id=author_id, content=content, parent_id=parent_id)
        self.db.add(comment)
        self.db.flush()
        return comment

    def list_top_level_comments(
        self,
        *,
        post_id: uuid.UUID,
        cursor_row: Comment | None = None,
        limit: int,
        descending: bool = True,
    ) -> list[Comment]:
        stmt = (
            select(Comment)
            .options(joinedload(Comment.author))
            .where(Comment.post_id == post_id, Comment.parent_id.is_(None))
        )
        stmt = apply_cursor(
            stmt,
            Comment,
            sort_column=Comment.created_at,
            cursor_row=cursor_row,
            descending=descending,
        )
        return list(self.db.scalars(stmt.limit(limit + 1)))

    def _latest_per_group(self, model, group_column, group_ids, *, limit: int, filters=()) -> dict:
        """Newest ``limit`` rows per group in a single windowed query."""
        if not group_ids:
            return {}
        rank = (
            func.row_number()
            .over(partition_by=group_column, order_by=(model.created_at.desc(), model.id.desc()))
            .label("rank")
        )
        ranked = select(model.id, rank).where(group_column.in_(group_ids), *filters).subquery()
        stmt = (
            select(model)
            .join(ranked, ranked.c.id == model.id)
            .options(joinedload(model.author))
            .where(ranked.c.rank <= limit)
            .order_by(group_column, model.created_at.desc(), model.id.desc())
        )
        grouped: dict = defaultdict(list)
        for row in self.db.scalars(stmt):
            grouped[getattr(row, group_column.key)].append(row)
        return dict(grouped)

    def preview_comments(self, post_ids: list[uuid.UUID], *, limit: int) -> dict[uuid.UUID, list[Comment]]:
        return self._latest_per_group(
            Comment, Comment.post_id, post_ids, limit=limit, filters=(Comment.parent_id.is_(None),)
        )

    def latest_viewer_comments(self, post_ids: list[uuid.UUID], viewer_id: uuid.UUID) -> dict[uuid.UUID, Comment]:
        grouped = self._latest_per_group(
            Comment,
            Comment.post_id,
            post_ids,
            limit=1,
            filters=(Comment.parent_id.is_(None), Comment.author_id == viewer_id),
        )
        return {post_id: rows[0] for post_id, rows in grouped.items()}

    def preview_replies(self, comment_ids: list[uuid.UUID], *, limit: int) -> dict[uuid.UUID, list[Comment]]:
        return self._latest_per_group(Comment, Comment.parent_id, comment_ids, limit=limit)

    def latest_viewer_replies(self, comment_ids: list[uuid.UUID], viewer_id: uuid.UUID) -> dict[uuid.UUID, Comment]:
        grouped = self._latest_per_group(
            Comment, Comment.parent_id, comment_ids, limit=1, filters=(Comment.author_id == viewer_id,)
        )
        return {comment_id: rows[0] for comment_id, rows in grouped.items()}

    def preview_post_reactions(
        self, post_ids: list[uuid.UUID], *, limit: int
    ) -> dict[uuid.UUID, list[PostReaction]]:
        return self._latest_per_group(PostReaction, PostReaction.post_id, post_ids, limit=limit)

    def preview_comment_reactions(
        self, comment_ids: list[uuid.UUID], *, limit: int
    ) -> dict[uuid.UUID, list[CommentReaction]]:
        return self._latest_per_group(CommentReaction, CommentReaction.comment_id, comment_ids, limit=limit)

    def _count_by(self, group_column, group_ids, *, filters=()) -> dict[uuid.UUID, int]:
        if not group_ids:
            return {}
        stmt = (
            select(group_column, func.count())
            .where(group_column.in_(group_ids), *filters)
            .group_by(group_column)
        )
        return {group_id: count for group_id, count in self.db.execute(stmt)}

    def count_post_reactions(self, post_ids: list[uuid.UUID]) -> dict[uuid.UUID, int]:
        return self._count_by(PostReaction.post_id, post_ids)

    def count_top_level_comments(self, post_ids: list[uuid.UUID]) -> dict[uuid.UUID, int]:
        return self._count_by(Comment.post_id, post_ids, filters=(Comment.parent_id.is_(None),))

    def count_comment_reactions(self, comment_ids: list[uuid.UUID]) -> dict[uuid.UUID, int]:
        return self._count_by(CommentReaction.comment_id, comment_ids)

    def count_replies(self, comment_ids: list[uuid.UUID]) -> dict[uuid.UUID, int]:
        return self._count_by(Comment.parent_id, comment_ids)

    def viewer_post_reactions(self, post_ids: list[uuid.UUID], viewer_id: uuid.UUID) -> list[PostReaction]:
        stmt = (
            select(PostReaction)
            .options(joinedload(PostReaction.author))
            .where(PostReaction.author_id == viewer_id, PostReaction.post_id.in_(post_ids))
        )
        return list(self.db.scalars(stmt))

    def viewer_comment_reactions(self, comment_ids: list[uuid.UUID], viewer_id: uuid.UUID) -> list[CommentReaction]:
        stmt = (
            select(CommentReaction)
            .options(joinedload(CommentReaction.author))
            .where(CommentReaction.author_id == viewer_id, CommentReaction.comment_id.in_(comment_ids))
        )
        return list(self.db.scalars(stmt))

    def list_post_reactions(
        self,
        *,
        post_id: uuid.UUID,
        cursor_row: PostReaction | None = None,
        limit: int,
        descending: bool = True,
    ) -> list[PostReaction]:
        stmt = select(PostReaction).options(joinedload(PostReaction.author)).where(PostReaction.post_id == post_id)
        stmt = apply_cursor(
            stmt,
            PostReaction,
            sort_column=PostReaction.created_at,
            cursor_row=cursor_row,
            descending=descending,
        )
        return list(self.db.scalars(stmt.limit(limit + 1)))

    def list_comment_reactions(
        self,
        *,
        comment_id: uuid.UUID,
        cursor_row: CommentReaction | None = None,
        limit: int,
        descending: bool = True,
    ) -> list[CommentReaction]:
        stmt = (
            select(CommentReaction)
            .options(joinedload(CommentReaction.author))
            .where(CommentReaction.comment_id == comment_id)
        )
        stmt = apply_cursor(
            stmt,
            CommentReaction,
            sort_column=CommentReaction.created_at,
            cursor_row=cursor_row,
            descending=descending,
        )
        return list(self.db.scalars(stmt.limit(limit + 1)))

    def upsert_post_reaction(self, *, post_id: uuid.UUID, author_id: uuid.UUID, reaction_type: str) -> None:
        stmt = (
            pg_insert(PostReaction)
            .values(
                id=uuid.uuid4(),
                post_id=post_id,
                author_id=author_id,
                reaction_type=reaction_type,
                created_at=datetime.now(timezone.utc),
            )
            .on_conflict_do_update(
                index_elements=[PostReaction.author_id, PostReaction.post_id],
                set_={"reaction_type": reaction_type},
            )
        )
        self.db.execute(stmt)

    def delete_post_reaction(self, *, post_id: uuid.UUID, author_id: uuid.UUID) -> None:
        self.db.execute(
            delete(PostReaction).where(PostReaction.post_id == post_id, PostReaction.author_id == author_id)
        )

    def upsert_comment_reaction(self, *, comment_id: uuid.UUID, author_id: uuid.UUID, reaction_type: str) -> None:
        stmt = (
            pg_insert(CommentReaction)
            .values(
                id=uuid.uuid4(),
                comment_id=comment_id,
                author_id=author_id,
                reaction_type=reaction_type,
                created_at=datetime.now(timezone.utc),
            )
            .on_conflict_do_update(
                index_elements=[CommentReaction.author_id, CommentReaction.comment_id],
                set_={"reaction_type": reaction_type},
            )
        )
        self.db.execute(stmt)

    def delete_comment_reaction(self, *, comment_id: uuid.UUID, author_id: uuid.UUID) -> None:
        self.db.execute(
            delete(CommentReaction).where(
                CommentReaction.comment_id == comment_id,
                CommentReaction.author_id == author_id,
            )
        )

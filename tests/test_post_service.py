from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from fastapi import HTTPException

from buddyzone.schemas.post import CreatePostRequest, PostCommentRequest, PostMediaRequest, ReactionRequest
from buddyzone.services.engagement import EngagementAggregator
from buddyzone.services.post_service import POST_NOT_FOUND, PostService, RepositoryEngagementLookup

BASE_TIME = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


def _user(username: str = "viewer") -> SimpleNamespace:
    return SimpleNamespace(id=uuid4(), username=username, first_name=username.title(), last_name="Tester", photo=None)


def _post_row(author: SimpleNamespace) -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid4(),
        content="hello buddies",
        visibility="PUBLIC",
        author=author,
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
        media=[],
    )


def _comment_row(author: SimpleNamespace, post_id, minutes: int, parent_id=None) -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid4(),
        post_id=post_id,
        parent_id=parent_id,
        content=f"comment by {author.username}",
        author=author,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


def _reaction_row(author: SimpleNamespace, minutes: int, *, post_id=None, comment_id=None) -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid4(),
        post_id=post_id,
        comment_id=comment_id,
        author=author,
        reaction_type="LIKE",
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


def _build_service() -> PostService:
    service = PostService.__new__(PostService)
    service.db = MagicMock()
    service.post_repo = MagicMock()
    service.aggregator = EngagementAggregator(
        RepositoryEngagementLookup(service.post_repo),
        reaction_limit=5,
        comment_limit=3,
        reply_limit=3,
    )

    repo = service.post_repo
    for method in (
        "preview_comments",
        "latest_viewer_comments",
        "preview_replies",
        "latest_viewer_replies",
        "preview_post_reactions",
        "preview_comment_reactions",
        "count_post_reactions",
        "count_top_level_comments",
        "count_comment_reactions",
        "count_replies",
    ):
        getattr(repo, method).return_value = {}
    repo.viewer_post_reactions.return_value = []
    repo.viewer_comment_reactions.return_value = []
    return service


def test_get_post_raises_not_found_for_invisible_post() -> None:
    service = _build_service()
    service.post_repo.get_visible_post.return_value = None

    with pytest.raises(HTTPException) as exc:
        service.get_post(user=_user(), post_id=uuid4())

    assert exc.value.status_code == 404
    assert exc.value.detail == POST_NOT_FOUND


def test_get_post_splices_viewer_reaction_and_reports_totals() -> None:
    service = _build_service()
    viewer = _user()
    post = _post_row(_user("owner"))
    service.post_repo.get_visible_post.return_value = post
    others = [_reaction_row(_user(f"u{index}"), 10 - index, post_id=post.id) for index in range(5)]
    service.post_repo.preview_post_reactions.return_value = {post.id: others}
    service.post_repo.count_post_reactions.return_value = {post.id: 6}
    service.post_repo.viewer_post_reactions.return_value = [_reaction_row(viewer, 0, post_id=post.id)]

    result = service.get_post(user=viewer, post_id=post.id)

    assert [reaction.author.username for reaction in result.reactions] == ["u0", "u1", "u2", "u3", "viewer"]
    assert result.total_reactions == 6
    assert result.total_comments == 0
    service.post_repo.viewer_post_reactions.assert_called_once_with([post.id], viewer.id)
    service.post_repo.viewer_comment_reactions.assert_not_called()


def test_get_post_keeps_viewer_comment_fetched_outside_preview() -> None:
    service = _build_service()
    viewer = _user()
    post = _post_row(_user("owner"))
    service.post_repo.get_visible_post.return_value = post
    preview = [_comment_row(_user(f"c{index}"), post.id, 30 - index) for index in range(3)]
    mine = _comment_row(viewer, post.id, 1)
    service.post_repo.preview_comments.return_value = {post.id: preview}
    service.post_repo.latest_viewer_comments.return_value = {post.id: mine}
    service.post_repo.count_top_level_comments.return_value = {post.id: 12}

    result = service.get_post(user=viewer, post_id=post.id)

    assert [comment.author.username for comment in result.comments] == ["c0", "c1", "viewer"]
    assert result.total_comments == 12
    assert all(comment.replies == [] for comment in result.comments)
    service.post_repo.viewer_comment_reactions.assert_called_once()


def test_get_post_does_not_duplicate_viewer_comment_already_in_preview() -> None:
    service = _build_service()
    viewer = _user()
    post = _post_row(_user("owner"))
    service.post_repo.get_visible_post.return_value = post
    mine = _comment_row(viewer, post.id, 5)
    service.post_repo.preview_comments.return_value = {post.id: [mine]}
    service.post_repo.latest_viewer_comments.return_value = {post.id: mine}

    result = service.get_post(user=viewer, post_id=post.id)

    assert [comment.id for comment in result.comments] == [mine.id]


def test_create_post_rejects_blank_content() -> None:
    service = _build_service()

    with pytest.raises(HTTPException) as exc:
        service.create_post(user=_user(), payload=CreatePostRequest(content="   "))

    assert exc.value.status_code == 400
    service.post_repo.create_post.assert_not_called()


def test_create_post_deduplicates_media_by_public_id() -> None:
    service = _build_service()
    user = _user()
    created = SimpleNamespace(id=uuid4())
    service.post_repo.create_post.return_value = created
    service.get_post = MagicMock(return_value="post-response")
    payload = CreatePostRequest(
        content=" first post ",
        visibility="PRIVATE",
        media_urls=[
            PostMediaRequest(public_id="img-1", url="https://cdn.example.com/1.png"),
            PostMediaRequest(public_id="img-1", url="https://cdn.example.com/1-copy.png"),
            PostMediaRequest(public_id="img-2", url="https://cdn.example.com/2.png"),
        ],
    )

    result = service.create_post(user=user, payload=payload)

    assert result == "post-response"
    kwargs = service.post_repo.create_post.call_args.kwargs
    assert kwargs["content"] == "first post"
    assert kwargs["visibility"] == "PRIVATE"
    assert kwargs["media"] == [("img-1", "https://cdn.example.com/1.png"), ("img-2", "https://cdn.example.com/2.png")]
    service.db.commit.assert_called_once()
    service.get_post.assert_called_once_with(user=user, post_id=created.id)


def test_comment_on_post_rejects_reply_to_reply() -> None:
    service = _build_service()
    post = _post_row(_user("owner"))
    service.post_repo.get_visible_post.return_value = post
    service.post_repo.get_post_comment.return_value = SimpleNamespace(id=uuid4(), parent_id=uuid4())

    with pytest.raises(HTTPException) as exc:
        service.comment_on_post(
            user=_user(),
            post_id=post.id,
            payload=PostCommentRequest(comment="nested", parent_comment_id=uuid4()),
        )

    assert exc.value.status_code == 400
    service.post_repo.create_comment.assert_not_called()


def test_comment_on_post_requires_existing_parent() -> None:
    service = _build_service()
    post = _post_row(_user("owner"))
    service.post_repo.get_visible_post.return_value = post
    service.post_repo.get_post_comment.return_value = None

    with pytest.raises(HTTPException) as exc:
        service.comment_on_post(
            user=_user(),
            post_id=post.id,
            payload=PostCommentRequest(comment="reply", parent_comment_id=uuid4()),
        )

    assert exc.value.status_code == 404


def test_comment_on_post_creates_reply_and_returns_post() -> None:
    service = _build_service()
    user = _user()
    post = _post_row(_user("owner"))
    parent_id = uuid4()
    service.post_repo.get_visible_post.return_value = post
    service.post_repo.get_post_comment.return_value = SimpleNamespace(id=parent_id, parent_id=None)
    service.post_repo.create_comment.return_value = SimpleNamespace(id=uuid4())
    service.get_post = MagicMock(return_value="post-response")

    result = service.comment_on_post(
        user=user,
        post_id=post.id,
        payload=PostCommentRequest(comment=" nice ", parent_comment_id=parent_id),
    )

    assert result == "post-response"
    service.post_repo.create_comment.assert_called_once_with(
        post_id=post.id,
        author_id=user.id,
        content="nice",
        parent_id=parent_id,
    )


def test_react_to_post_with_null_type_removes_reaction() -> None:
    service = _build_service()
    user = _user()
    post = _post_row(_user("owner"))
    service.post_repo.get_visible_post.return_value = post
    service.get_post = MagicMock(return_value="post-response")

    service.react_to_post(user=user, post_id=post.id, payload=ReactionRequest(reaction_type=None))

    service.post_repo.delete_post_reaction.assert_called_once_with(post_id=post.id, author_id=user.id)
    service.post_repo.upsert_post_reaction.assert_not_called()
    service.db.commit.assert_called_once()


def test_react_to_comment_upserts_reaction_type() -> None:
    service = _build_service()
    user = _user()
    post = _post_row(_user("owner"))
    comment_id = uuid4()
    service.post_repo.get_visible_post.return_value = post
    service.post_repo.get_post_comment.return_value = SimpleNamespace(id=comment_id, parent_id=None)
    service.get_post = MagicMock(return_value="post-response")

    service.react_to_comment(
        user=user,
        post_id=post.id,
        comment_id=comment_id,
        payload=ReactionRequest(reaction_type="WOW"),
    )

    service.post_repo.upsert_comment_reaction.assert_called_once_with(
        comment_id=comment_id,
        author_id=user.id,
        reaction_type="WOW",
    )
    service.post_repo.delete_comment_reaction.assert_not_called()


def test_list_posts_uses_extra_row_for_next_cursor() -> None:
    service = _build_service()
    rows = [_post_row(_user("owner")) for _ in range(3)]
    service.post_repo.list_visible_posts.return_value = rows
    service._load_raw_posts = MagicMock(return_value=[])

    result = service.list_posts(user=_user(), cursor=None, limit=2, order="desc", order_by="created_at")

    assert result.meta.has_next is True
    assert result.meta.next_cursor == rows[2].id
    assert service._load_raw_posts.call_args.args[0] == rows[:2]
    assert service.post_repo.list_visible_posts.call_args.kwargs["descending"] is True


def test_list_posts_last_page_has_no_cursor() -> None:
    service = _build_service()
    service.post_repo.list_visible_posts.return_value = [_post_row(_user("owner"))]

    result = service.list_posts(user=_user(), cursor=None, limit=10, order="asc", order_by="updated_at")

    assert result.meta.has_next is False
    assert result.meta.next_cursor is None
    assert len(result.items) == 1


def test_list_posts_rejects_unknown_order_by() -> None:
    service = _build_service()

    with pytest.raises(HTTPException) as exc:
        service.list_posts(user=_user(), cursor=None, limit=10, order="desc", order_by="content")

    assert exc.value.status_code == 400
    service.post_repo.list_visible_posts.assert_not_called()


def test_list_posts_rejects_unknown_cursor() -> None:
    service = _build_service()
    service.post_repo.get_row.return_value = None

    with pytest.raises(HTTPException) as exc:
        service.list_posts(user=_user(), cursor=uuid4(), limit=10, order="desc", order_by="created_at")

    assert exc.value.status_code == 400
    assert exc.value.detail == "Invalid cursor"


def test_list_comment_reactions_requires_existing_comment() -> None:
    service = _build_service()
    service.post_repo.get_row.return_value = None

    with pytest.raises(HTTPException) as exc:
        service.list_comment_reactions(user=_user(), comment_id=uuid4(), cursor=None, limit=10, order="desc")

    assert exc.value.status_code == 404


def test_list_post_reactions_pages_rows() -> None:
    service = _build_service()
    post = _post_row(_user("owner"))
    service.post_repo.get_visible_post.return_value = post
    rows = [_reaction_row(_user(f"u{index}"), index, post_id=post.id) for index in range(2)]
    service.post_repo.list_post_reactions.return_value = rows

    result = service.list_post_reactions(user=_user(), post_id=post.id, cursor=None, limit=1, order="desc")

    assert [item.author.username for item in result.items] == ["u0"]
    assert result.meta.has_next is True
    assert result.meta.next_cursor == rows[1].id


def test_get_post_keeps_viewer_reply_fetched_outside_preview() -> None:
    service = _build_service()
    viewer = _user()
    post = _post_row(_user("owner"))
    service.post_repo.get_visible_post.return_value = post
    comment = _comment_row(_user("c0"), post.id, 60)
    preview_replies = [_comment_row(_user(f"r{index}"), post.id, 50 - index, parent_id=comment.id) for index in range(3)]
    mine = _comment_row(viewer, post.id, 1, parent_id=comment.id)
    service.post_repo.preview_comments.return_value = {post.id: [comment]}
    service.post_repo.preview_replies.return_value = {comment.id: preview_replies}
    service.post_repo.latest_viewer_replies.return_value = {comment.id: mine}
    service.post_repo.count_replies.return_value = {comment.id: 9}

    result = service.get_post(user=viewer, post_id=post.id)

    processed = result.comments[0]
    assert [reply.author.username for reply in processed.replies] == ["r0", "r1", "viewer"]
    assert processed.total_replies == 9
    assert all(reply.replies is None for reply in processed.replies)
    service.post_repo.latest_viewer_replies.assert_called_once_with([comment.id], viewer.id)

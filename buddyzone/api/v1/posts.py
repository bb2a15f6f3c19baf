from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from buddyzone.api.deps import get_current_user
from buddyzone.db.session import get_db
from buddyzone.models.user import User
from buddyzone.schemas.post import (
    CommentListResponse,
    CreatePostRequest,
    PostCommentRequest,
    PostListResponse,
    PostResponse,
    ReactionListResponse,
    ReactionRequest,
    SortOrder,
)
from buddyzone.services.post_service import PostService

router = APIRouter(prefix="/posts", tags=["posts"])


@router.post("", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
def create_post(
    payload: CreatePostRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PostService(db).create_post(user=current_user, payload=payload)


@router.get("", response_model=PostListResponse)
def list_posts(
    cursor: UUID | None = Query(default=None),
    limit: int = Query(default=10, ge=1, le=100),
    order: SortOrder = Query(default="desc"),
    order_by: str = Query(default="created_at"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PostService(db).list_posts(
        user=current_user,
        cursor=cursor,
        limit=limit,
        order=order,
        order_by=order_by,
    )


@router.get("/username/{username}", response_model=PostListResponse)
def list_posts_by_username(
    username: str,
    cursor: UUID | None = Query(default=None),
    limit: int = Query(default=10, ge=1, le=100),
    order: SortOrder = Query(default="desc"),
    order_by: str = Query(default="created_at"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PostService(db).list_posts(
        user=current_user,
        username=username,
        cursor=cursor,
        limit=limit,
        order=order,
        order_by=order_by,
    )


@router.get("/comment/{comment_id}/reactions", response_model=ReactionListResponse)
def list_comment_reactions(
    comment_id: UUID,
    cursor: UUID | None = Query(default=None),
    limit: int = Query(default=10, ge=1, le=100),
    order: SortOrder = Query(default="desc"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PostService(db).list_comment_reactions(
        user=current_user,
        comment_id=comment_id,
        cursor=cursor,
        limit=limit,
        order=order,
    )


@router.get("/{post_id}", response_model=PostResponse)
def get_post(
    post_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PostService(db).get_post(user=current_user, post_id=post_id)


@router.post("/{post_id}/react", response_model=PostResponse)
def react_to_post(
    post_id: UUID,
    payload: ReactionRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PostService(db).react_to_post(user=current_user, post_id=post_id, payload=payload)


@router.post("/{post_id}/comment", response_model=PostResponse)
def comment_on_post(
    post_id: UUID,
    payload: PostCommentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PostService(db).comment_on_post(user=current_user, post_id=post_id, payload=payload)


@router.post("/{post_id}/comment/{comment_id}/react", response_model=PostResponse)
def react_to_comment(
    post_id: UUID,
    comment_id: UUID,
    payload: ReactionRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PostService(db).react_to_comment(
        user=current_user,
        post_id=post_id,
        comment_id=comment_id,
        payload=payload,
    )


@router.get("/{post_id}/comments", response_model=CommentListResponse)
def list_comments(
    post_id: UUID,
    cursor: UUID | None = Query(default=None),
    limit: int = Query(default=10, ge=1, le=100),
    order: SortOrder = Query(default="desc"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PostService(db).list_comments(
        user=current_user,
        post_id=post_id,
        cursor=cursor,
        limit=limit,
        order=order,
    )


@router.get("/{post_id}/reactions", response_model=ReactionListResponse)
def list_post_reactions(
    post_id: UUID,
    cursor: UUID | None = Query(default=None),
    limit: int = Query(default=10, ge=1, le=100),
    order: SortOrder = Query(default="desc"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PostService(db).list_post_reactions(
        user=current_user,
        post_id=post_id,
        cursor=cursor,
        limit=limit,
        order=order,
    )

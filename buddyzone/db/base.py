from buddyzone.models.base import Base
from buddyzone.models.comment import Comment
from buddyzone.models.post import Post, PostMedia
from buddyzone.models.reaction import CommentReaction, PostReaction
from buddyzone.models.user import User
from buddyzone.models.user_session import UserSession

__all__ = [
    "Base",
    "User",
    "UserSession",
    "Post",
    "PostMedia",
    "Comment",
    "PostReaction",
    "CommentReaction",
]

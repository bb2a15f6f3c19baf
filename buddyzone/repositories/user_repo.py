import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from buddyzone.models.user import User


class UserRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_by_id(self, user_pk: uuid.UUID) -> User | None:
        return self.db.scalar(select(User).where(User.id == user_pk))

    def get_by_username(self, username: str) -> User | None:
        return self.db.scalar(select(User).where(User.username == username))

    def get_by_email(self, email: str) -> User | None:
        return self.db.scalar(select(User).where(User.email == email))

    def username_exists(self, username: str) -> bool:
        return self.db.scalar(select(User.id).where(User.username == username)) is not None

    def create(
        self,
        *,
        username: str,
        email: str,
        password_hash: str,
        first_name: str,
        last_name: str,
    ) -> User:
        user = User(
            username=username,
            email=email,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
        )
        self.db.add(user)
        self.db.flush()
        return user

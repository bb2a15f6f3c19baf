from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from buddyzone.models.user import User
from buddyzone.repositories.user_repo import UserRepository
from buddyzone.schemas.user import UpdateMeRequest, UserProfileResponse


class UserService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.user_repo = UserRepository(db)

    def get_profile(self, *, user: User, username: str) -> UserProfileResponse:
        target = self.user_repo.get_by_username(username.strip())
        if not target:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        return self._to_profile(target, is_current_user=target.id == user.id)

    def update_me(self, *, user: User, payload: UpdateMeRequest) -> UserProfileResponse:
        # Only fields present in the request body are touched; photo may be cleared with null.
        fields = payload.model_fields_set
        first_name = payload.first_name.strip() if payload.first_name is not None else user.first_name
        last_name = payload.last_name.strip() if payload.last_name is not None else user.last_name
        if not first_name or not last_name:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="First and last name cannot be blank")

        user.first_name = first_name
        user.last_name = last_name
        if "photo" in fields:
            user.photo = payload.photo.strip() if payload.photo else None

        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return self._to_profile(user, is_current_user=True)

    @staticmethod
    def _to_profile(user: User, *, is_current_user: bool) -> UserProfileResponse:
        return UserProfileResponse(
            id=user.id,
            username=user.username,
            first_name=user.first_name,
            last_name=user.last_name,
            photo=user.photo,
            is_current_user=is_current_user,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )

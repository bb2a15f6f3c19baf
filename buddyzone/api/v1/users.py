from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from buddyzone.api.deps import get_current_user
from buddyzone.db.session import get_db
from buddyzone.models.user import User
from buddyzone.schemas.user import UpdateMeRequest, UserProfileResponse
from buddyzone.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.put("/me", response_model=UserProfileResponse)
def update_me(
    payload: UpdateMeRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return UserService(db).update_me(user=current_user, payload=payload)


@router.get("/{username}", response_model=UserProfileResponse)
def get_user_profile(
    username: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return UserService(db).get_profile(user=current_user, username=username)

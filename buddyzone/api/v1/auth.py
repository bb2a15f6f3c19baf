from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from buddyzone.api.deps import get_current_user
from buddyzone.db.session import get_db
from buddyzone.models.user import User
from buddyzone.schemas.auth import AuthResponse, GenericMessageResponse, LoginRequest, LogoutRequest, RegisterRequest
from buddyzone.schemas.user import UserPublic
from buddyzone.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, request: Request, db: Session = Depends(get_db)):
    return AuthService(db).register(
        payload,
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


@router.post("/login", response_model=AuthResponse)
def login(payload: LoginRequest, request: Request, db: Session = Depends(get_db)):
    return AuthService(db).login(
        payload,
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


@router.post("/logout", response_model=GenericMessageResponse)
def logout(payload: LogoutRequest, db: Session = Depends(get_db)):
    return AuthService(db).logout(payload)


@router.get("/me", response_model=UserPublic)
def me(current_user: User = Depends(get_current_user)):
    return UserPublic.model_validate(current_user)

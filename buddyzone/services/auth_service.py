import logging
import time
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException, status
from redis import Redis
from sqlalchemy.orm import Session

from buddyzone.core.config import settings
from buddyzone.core.security import (
    create_access_token,
    create_refresh_token,
    get_password_hash,
    hash_token,
    is_strong_password,
    verify_password,
)
from buddyzone.infra.redis_client import get_redis
from buddyzone.repositories.session_repo import SessionRepository
from buddyzone.repositories.user_repo import UserRepository
from buddyzone.schemas.auth import (
    AuthResponse,
    GenericMessageResponse,
    LoginRequest,
    LogoutRequest,
    RegisterRequest,
    TokenPayload,
)
from buddyzone.schemas.user import UserPublic

logger = logging.getLogger(__name__)

GENERIC_LOGIN_ERROR = "Invalid credentials"
MAX_USERNAME_ATTEMPTS = 10
MIN_PASSWORD_LENGTH = 8


class AuthService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.user_repo = UserRepository(db)
        self.session_repo = SessionRepository(db)
        self.redis: Redis = get_redis()

    def register(self, payload: RegisterRequest, *, ip: str | None, user_agent: str | None) -> AuthResponse:
        first_name = payload.first_name.strip()
        last_name = payload.last_name.strip()
        email = payload.email.lower().strip()
        password = payload.password.strip()

        if not first_name or not last_name:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="First and last name are required")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            )
        if not is_strong_password(password):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Password needs upper and lower case letters, a number and a symbol",
            )
        if self.user_repo.get_by_email(email):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already in use")

        user = self.user_repo.create(
            username=self._generate_username(first_name, last_name),
            email=email,
            password_hash=get_password_hash(password),
            first_name=first_name,
            last_name=last_name,
        )
        token_payload = self._issue_tokens(user.id, user.username, ip=ip, user_agent=user_agent)
        self.db.commit()
        self.db.refresh(user)
        logger.info("user registered", extra={"user_id": str(user.id), "username": user.username})

        return AuthResponse(user=UserPublic.model_validate(user), token=token_payload)

    def login(self, payload: LoginRequest, *, ip: str | None, user_agent: str | None) -> AuthResponse:
        email = payload.email.lower().strip()
        self._ensure_login_not_locked(email, ip)

        user = self.user_repo.get_by_email(email)
        if not user or not verify_password(payload.password.strip(), user.password_hash):
            self._record_login_failure(email, ip)
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=GENERIC_LOGIN_ERROR)

        self._clear_login_failure(email, ip)

        token_payload = self._issue_tokens(user.id, user.username, ip=ip, user_agent=user_agent)
        self.db.commit()

        return AuthResponse(user=UserPublic.model_validate(user), token=token_payload)

    def logout(self, payload: LogoutRequest) -> GenericMessageResponse:
        if self.session_repo.revoke_by_refresh_hash(hash_token(payload.refresh_token)):
            self.db.commit()
        return GenericMessageResponse(message="Logged out successfully")

    def _generate_username(self, first_name: str, last_name: str) -> str:
        base_username = f"{first_name.lower()}.{last_name.lower()}".replace(" ", "")
        for attempt in range(MAX_USERNAME_ATTEMPTS):
            username = base_username if attempt == 0 else f"{base_username}{attempt}"
            if not self.user_repo.username_exists(username):
                return username
        return f"{base_username}.{str(int(time.time() * 1000))[-6:]}"

    def _issue_tokens(self, user_pk, username: str, *, ip: str | None, user_agent: str | None) -> TokenPayload:
        access_token, expires_in = create_access_token(subject=str(user_pk), username=username)
        refresh_token = create_refresh_token()
        expires_at = datetime.now(timezone.utc) + timedelta(days=settings.refresh_token_expire_days)

        self.session_repo.create(
            user_id=user_pk,
            refresh_token_hash=hash_token(refresh_token),
            expires_at=expires_at,
            ip=ip,
            user_agent=user_agent,
        )
        return TokenPayload(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=expires_in,
        )

    def _risk_key(self, email: str, ip: str | None) -> str:
        return f"{email}:{ip or 'unknown'}"

    def _ensure_login_not_locked(self, email: str, ip: str | None) -> None:
        if self.redis.exists(f"auth:login:lock:{self._risk_key(email, ip)}"):
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many failed login attempts, try again later",
            )

    def _record_login_failure(self, email: str, ip: str | None) -> None:
        risk = self._risk_key(email, ip)
        fail_key = f"auth:login:fail:{risk}"

        failures = self.redis.incr(fail_key)
        if failures == 1:
            self.redis.expire(fail_key, settings.login_fail_ttl_seconds)

        if failures >= settings.login_fail_threshold:
            self.redis.set(f"auth:login:lock:{risk}", "1", ex=settings.login_lock_ttl_seconds)
            logger.warning("login locked after repeated failures", extra={"email": email, "ip": ip})

    def _clear_login_failure(self, email: str, ip: str | None) -> None:
        risk = self._risk_key(email, ip)
        self.redis.delete(f"auth:login:fail:{risk}", f"auth:login:lock:{risk}")

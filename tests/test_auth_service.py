from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from fastapi import HTTPException

from buddyzone.core.config import settings
from buddyzone.core.security import hash_token
from buddyzone.schemas.auth import LoginRequest, LogoutRequest, RegisterRequest
from buddyzone.services import auth_service
from buddyzone.services.auth_service import GENERIC_LOGIN_ERROR, AuthService


def _build_service() -> AuthService:
    service = AuthService.__new__(AuthService)
    service.db = MagicMock()
    service.user_repo = MagicMock()
    service.session_repo = MagicMock()
    service.redis = MagicMock()
    return service


def _user_row(**overrides) -> SimpleNamespace:
    now = datetime(2026, 10, 1, tzinfo=timezone.utc)
    values = {
        "id": uuid4(),
        "username": "john.doe",
        "email": "john@example.com",
        "password_hash": "hashed",
        "first_name": "John",
        "last_name": "Doe",
        "photo": None,
        "created_at": now,
        "updated_at": now,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def test_register_rejects_weak_password() -> None:
    service = _build_service()
    payload = RegisterRequest(first_name="John", last_name="Doe", email="john@example.com", password="password123")

    with pytest.raises(HTTPException) as exc:
        service.register(payload, ip=None, user_agent=None)

    assert exc.value.status_code == 400
    service.user_repo.create.assert_not_called()


def test_register_rejects_existing_email() -> None:
    service = _build_service()
    service.user_repo.get_by_email.return_value = _user_row()
    payload = RegisterRequest(first_name="John", last_name="Doe", email="John@Example.com", password="Str0ng!pass")

    with pytest.raises(HTTPException) as exc:
        service.register(payload, ip=None, user_agent=None)

    assert exc.value.status_code == 409
    service.user_repo.get_by_email.assert_called_once_with("john@example.com")


def test_register_creates_user_with_free_username_and_session(monkeypatch) -> None:
    service = _build_service()
    monkeypatch.setattr(auth_service, "get_password_hash", lambda password: f"hashed:{password}")
    service.user_repo.get_by_email.return_value = None
    service.user_repo.username_exists.side_effect = [True, True, False]
    service.user_repo.create.side_effect = lambda **kwargs: _user_row(
        username=kwargs["username"],
        email=kwargs["email"],
        password_hash=kwargs["password_hash"],
    )
    payload = RegisterRequest(first_name="John", last_name="Doe", email="john@example.com", password="Str0ng!pass")

    result = service.register(payload, ip="127.0.0.1", user_agent="pytest")

    kwargs = service.user_repo.create.call_args.kwargs
    assert kwargs["username"] == "john.doe2"
    assert kwargs["password_hash"] == "hashed:Str0ng!pass"
    assert result.user.username == "john.doe2"
    assert result.token.token_type == "bearer"
    assert result.token.expires_in == settings.access_token_expire_minutes * 60
    session_kwargs = service.session_repo.create.call_args.kwargs
    assert session_kwargs["refresh_token_hash"] == hash_token(result.token.refresh_token)
    assert session_kwargs["ip"] == "127.0.0.1"
    service.db.commit.assert_called_once()


def test_generate_username_falls_back_to_timestamp_suffix() -> None:
    service = _build_service()
    service.user_repo.username_exists.return_value = True

    username = service._generate_username("Mary Ann", "Smith")

    assert username.startswith("maryann.smith.")
    assert service.user_repo.username_exists.call_count == auth_service.MAX_USERNAME_ATTEMPTS


def test_login_is_refused_while_locked() -> None:
    service = _build_service()
    service.redis.exists.return_value = 1

    with pytest.raises(HTTPException) as exc:
        service.login(LoginRequest(email="john@example.com", password="whatever"), ip="10.0.0.1", user_agent=None)

    assert exc.value.status_code == 429
    service.user_repo.get_by_email.assert_not_called()


def test_login_failure_locks_after_threshold() -> None:
    service = _build_service()
    service.redis.exists.return_value = 0
    service.redis.incr.return_value = settings.login_fail_threshold
    service.user_repo.get_by_email.return_value = None

    with pytest.raises(HTTPException) as exc:
        service.login(LoginRequest(email="john@example.com", password="whatever"), ip="10.0.0.1", user_agent=None)

    assert exc.value.status_code == 401
    assert exc.value.detail == GENERIC_LOGIN_ERROR
    service.redis.incr.assert_called_once_with("auth:login:fail:john@example.com:10.0.0.1")
    service.redis.set.assert_called_once_with(
        "auth:login:lock:john@example.com:10.0.0.1",
        "1",
        ex=settings.login_lock_ttl_seconds,
    )


def test_login_success_clears_failures(monkeypatch) -> None:
    service = _build_service()
    monkeypatch.setattr(auth_service, "verify_password", lambda plain, hashed: True)
    service.redis.exists.return_value = 0
    user = _user_row()
    service.user_repo.get_by_email.return_value = user

    result = service.login(LoginRequest(email="john@example.com", password="Str0ng!pass"), ip=None, user_agent=None)

    assert result.user.id == user.id
    service.redis.delete.assert_called_once_with(
        "auth:login:fail:john@example.com:unknown",
        "auth:login:lock:john@example.com:unknown",
    )
    service.db.commit.assert_called_once()


def test_logout_commits_only_when_session_revoked() -> None:
    service = _build_service()
    service.session_repo.revoke_by_refresh_hash.return_value = False
    refresh_token = "r" * 32

    result = service.logout(LogoutRequest(refresh_token=refresh_token))

    assert result.message == "Logged out successfully"
    service.session_repo.revoke_by_refresh_hash.assert_called_once_with(hash_token(refresh_token))
    service.db.commit.assert_not_called()


def test_register_checks_length_after_trimming_password() -> None:
    service = _build_service()
    service.user_repo.get_by_email.return_value = None
    payload = RegisterRequest(first_name="John", last_name="Doe", email="john@example.com", password="   Ab1!   ")

    with pytest.raises(HTTPException) as exc:
        service.register(payload, ip=None, user_agent=None)

    assert exc.value.status_code == 400
    assert exc.value.detail == f"Password must be at least {auth_service.MIN_PASSWORD_LENGTH} characters"
    service.user_repo.create.assert_not_called()
    service.db.commit.assert_not_called()

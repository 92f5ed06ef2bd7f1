"""Authentication: password hashing, JWT sessions, and the /auth routes.

A token is accepted from the ``Authorization: Bearer`` header or from the session
cookie set by login/register. The first registered user becomes admin.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Request, Response
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.orm import Session

from launchtracker import services
from launchtracker.config import Settings
from launchtracker.db import db_session
from launchtracker.enums import UserRole
from launchtracker.errors import AuthenticationError, AuthorizationError, NotFoundError, ValidationError
from launchtracker.models import User
from launchtracker.schemas import (
    Ack,
    AuthOut,
    Envelope,
    LoginIn,
    PasswordChangeIn,
    RegisterIn,
    RoleUpdateIn,
    UserOut,
)

log = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])
pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
bearer_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def hash_pw(password: str) -> str:
    return pwd.hash(password)


def verify_pw(password: str, hashed: str) -> bool:
    return pwd.verify(password, hashed)


def app_settings(request: Request) -> Settings:
    return request.app.state.settings


def create_access_token(user: User, settings: Settings) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "role": UserRole(user.role).value,
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_expire_minutes),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise AuthenticationError("Invalid or expired token") from exc


def get_current_user(
    request: Request,
    token: str | None = Depends(bearer_scheme),
    session: Session = Depends(db_session),
    settings: Settings = Depends(app_settings),
) -> User:
    # an explicit header wins over the ambient cookie
    token = token or request.cookies.get(settings.cookie_name)
    if not token:
        raise AuthenticationError("Authentication required")
    payload = decode_token(token, settings)
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError) as exc:
        raise AuthenticationError("Invalid or expired token") from exc
    user = session.get(User, user_id)
    if user is None:
        raise AuthenticationError("User not found")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.admin:
        raise AuthorizationError("Admin access required")
    return user


def _set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        settings.cookie_name, token, httponly=True, secure=settings.cookie_secure,
        samesite="lax", max_age=settings.jwt_expire_minutes * 60,
    )


def _auth_payload(user: User, token: str) -> dict:
    return {"data": {"user": services.user_summary(user), "token": token}, "success": True}


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/register", response_model=Envelope[AuthOut], status_code=201,
             summary="Create an account and start a session")
async def register(
    body: RegisterIn,
    response: Response,
    session: Session = Depends(db_session),
    settings: Settings = Depends(app_settings),
):
    email = body.email.lower()
    if session.execute(select(User.id).where(User.email == email)).first():
        raise ValidationError("Email already registered", [{"field": "email", "message": "Already registered"}])
    first_user = session.execute(select(User.id).limit(1)).first() is None
    user = User(
        email=email, password_hash=hash_pw(body.password), name=body.name,
        role=UserRole.admin if first_user else UserRole.collaborator,
    )
    session.add(user)
    session.commit()
    log.info("Registered user %d (%s) as %s", user.id, user.email, user.role.value)
    token = create_access_token(user, settings)
    _set_session_cookie(response, token, settings)
    return _auth_payload(user, token)


@router.post("/login", response_model=Envelope[AuthOut], summary="Log in with email and password")
async def login(
    body: LoginIn,
    response: Response,
    session: Session = Depends(db_session),
    settings: Settings = Depends(app_settings),
):
    user = session.execute(select(User).where(User.email == body.email.lower())).scalars().first()
    if user is None or not verify_pw(body.password, user.password_hash):
        log.warning("Failed login for %s", body.email)
        raise AuthenticationError("Invalid email or password")
    token = create_access_token(user, settings)
    _set_session_cookie(response, token, settings)
    return _auth_payload(user, token)


@router.post("/logout", response_model=Ack, summary="Clear the session cookie")
async def logout(response: Response, settings: Settings = Depends(app_settings)):
    response.delete_cookie(settings.cookie_name)
    return {"success": True, "message": "Logged out successfully"}


@router.get("/me", response_model=Envelope[UserOut], summary="Current user")
async def me(user: User = Depends(get_current_user)):
    return {"data": services.user_summary(user), "success": True}


@router.post("/password", response_model=Ack, summary="Change the current user's password")
async def change_password(
    body: PasswordChangeIn,
    user: User = Depends(get_current_user),
    session: Session = Depends(db_session),
):
    if not verify_pw(body.current_password, user.password_hash):
        raise ValidationError(
            "Current password is incorrect",
            [{"field": "currentPassword", "message": "Incorrect password"}],
        )
    user.password_hash = hash_pw(body.new_password)
    session.commit()
    return {"success": True, "message": "Password updated"}


@router.get("/users", response_model=Envelope[list[UserOut]], summary="List users (admin only)")
async def list_users(
    _admin: User = Depends(require_admin),
    session: Session = Depends(db_session),
):
    users = session.execute(select(User).order_by(User.id)).scalars()
    return {"data": [services.user_summary(u) for u in users], "success": True}


@router.patch("/users/{user_id}/role", response_model=Envelope[UserOut],
              summary="Change a user's role (admin only)")
async def update_role(
    user_id: int,
    body: RoleUpdateIn,
    admin: User = Depends(require_admin),
    session: Session = Depends(db_session),
):
    if user_id == admin.id:
        raise ValidationError("You cannot change your own role")
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    user.role = body.role
    session.commit()
    log.info("User %d role set to %s by %d", user.id, user.role.value, admin.id)
    return {"data": services.user_summary(user), "success": True}

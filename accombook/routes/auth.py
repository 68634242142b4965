# AccomBook API - Short-term Accommodation Booking Service
# Copyright (C) 2025 Oleg Tokmakov
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""Authentication routes."""

from datetime import datetime, timedelta
from typing import Optional

import structlog
from fastapi import APIRouter, Cookie, Depends, HTTPException, Response, status
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from accombook.config import get_settings
from accombook.database import get_db
from accombook.middleware.auth import get_current_user
from accombook.models.auth import RefreshToken
from accombook.models.user import User
from accombook.services.security import (
    REFRESH_TOKEN_TYPE,
    TokenError,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    looks_like_jwt,
    verify_password,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/auth")

REFRESH_COOKIE = "refresh_token"
MAX_PASSWORD_BYTES = 72


class RegisterRequest(BaseModel):
    """Registration request."""

    fullname: str = Field(min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(min_length=8)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.lower().strip()

    @field_validator("password")
    @classmethod
    def check_password_bytes(cls, v):
        # bcrypt only reads the first 72 bytes
        if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password cannot be longer than {MAX_PASSWORD_BYTES} bytes")
        return v


class LoginRequest(BaseModel):
    """Login request."""

    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.lower().strip()


def _issue_tokens(db: Session, user: User, response: Response) -> str:
    """Store a new refresh token, set its cookie and return an access token."""
    settings = get_settings()

    refresh_token = create_refresh_token(user.id)
    db.add(
        RefreshToken(
            user_id=user.id,
            token=refresh_token,
            expires_at=datetime.utcnow() + timedelta(days=settings.security.refresh_token_days),
        )
    )
    db.commit()

    response.set_cookie(
        key=REFRESH_COOKIE,
        value=refresh_token,
        httponly=True,
        secure=not settings.app.debug,
        samesite="strict",
        max_age=settings.security.refresh_token_days * 24 * 60 * 60,
    )

    return create_access_token(user.id)


def _user_summary(user: User) -> dict:
    return {"id": user.id, "fullname": user.fullname, "email": user.email}


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    response: Response,
    db: Session = Depends(get_db),
):
    """Register a new user and log them in."""
    if db.query(User).filter(User.email == data.email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User email or password is invalid",
        )

    user = User(
        fullname=data.fullname.strip(),
        email=data.email,
        password_hash=hash_password(data.password),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Registered concurrently with the same email
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User email or password is invalid",
        )
    db.refresh(user)

    access_token = _issue_tokens(db, user, response)
    logger.info("user_registered", user_id=user.id)

    return {
        "success": True,
        "user": _user_summary(user),
        "access_token": access_token,
    }


@router.post("/login")
async def login(
    data: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
):
    """Log in with email and password."""
    user = db.query(User).filter(User.email == data.email).first()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    if not verify_password(data.password, user.password_hash):
        logger.warning("login_failed", user_id=user.id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    user.last_login_at = datetime.utcnow()
    access_token = _issue_tokens(db, user, response)
    logger.info("user_logged_in", user_id=user.id)

    return {
        "success": True,
        "user": _user_summary(user),
        "access_token": access_token,
    }


@router.post("/refresh-token")
async def refresh_access_token(
    refresh_token: Optional[str] = Cookie(None),
    db: Session = Depends(get_db),
):
    """Exchange the refresh token cookie for a new access token."""
    if not looks_like_jwt(refresh_token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token missing or malformed",
        )

    try:
        user_id = decode_token(refresh_token, REFRESH_TOKEN_TYPE)
    except TokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
        )

    stored = (
        db.query(RefreshToken)
        .filter(RefreshToken.token == refresh_token, RefreshToken.user_id == user_id)
        .first()
    )

    if not stored or not stored.is_valid():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
        )

    return {
        "success": True,
        "access_token": create_access_token(user_id),
    }


@router.post("/logout")
async def logout(
    response: Response,
    refresh_token: Optional[str] = Cookie(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Revoke the refresh token held in the cookie."""
    if refresh_token:
        db.query(RefreshToken).filter(
            RefreshToken.token == refresh_token,
            RefreshToken.user_id == current_user.id,
        ).delete(synchronize_session=False)
        db.commit()

    response.delete_cookie(REFRESH_COOKIE)
    logger.info("user_logged_out", user_id=current_user.id)

    return {
        "success": True,
        "message": "Logged out",
    }

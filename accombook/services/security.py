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

"""Password hashing and JSON Web Token helpers."""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

from accombook.config import get_settings

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class TokenError(Exception):
    """Token could not be decoded or is not usable."""


class TokenExpiredError(TokenError):
    """Token signature is valid but it has expired."""


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """Hash a password with bcrypt."""
    if rounds is None:
        rounds = get_settings().security.bcrypt_rounds
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash, or a password bcrypt refuses (over 72 bytes)
        return False


def _encode(user_id: int, token_type: str, lifetime: timedelta) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "iat": now,
        "exp": now + lifetime,
        # Two tokens minted in the same second must still differ
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(
        payload,
        settings.security.jwt_secret,
        algorithm=settings.security.jwt_algorithm,
    )


def create_access_token(user_id: int) -> str:
    """Issue a short-lived access token for a user."""
    minutes = get_settings().security.access_token_minutes
    return _encode(user_id, ACCESS_TOKEN_TYPE, timedelta(minutes=minutes))


def create_refresh_token(user_id: int) -> str:
    """Issue a long-lived refresh token for a user."""
    days = get_settings().security.refresh_token_days
    return _encode(user_id, REFRESH_TOKEN_TYPE, timedelta(days=days))


def decode_token(token: str, expected_type: str) -> int:
    """Decode a token and return the user id it was issued for.

    Raises:
        TokenExpiredError: If the token has expired.
        TokenError: If the token is malformed, badly signed or of the wrong type.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.security.jwt_secret,
            algorithms=[settings.security.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError as e:
        raise TokenExpiredError("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise TokenError("Token invalid") from e

    if payload.get("type") != expected_type:
        raise TokenError("Wrong token type")

    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        raise TokenError("Token subject missing") from e


def looks_like_jwt(token: Optional[str]) -> bool:
    """Cheap format check: three dot-separated segments."""
    return bool(token) and len(token.split(".")) == 3

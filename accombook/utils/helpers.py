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

"""Utility helper functions."""

import json
import re
import secrets
from typing import Any, List, Optional, Tuple


def generate_token(length: int = 16) -> str:
    """Generate a secure random token.

    Args:
        length: Length of the token in bytes (will be URL-safe encoded).

    Returns:
        URL-safe random token string.
    """
    return secrets.token_urlsafe(length)


def sanitize_input(text: Optional[str], max_length: Optional[int] = None) -> str:
    """Sanitize user input by stripping HTML tags and limiting length.

    Args:
        text: Input text to sanitize.
        max_length: Maximum allowed length (truncates if exceeded).

    Returns:
        Sanitized string.
    """
    if text is None:
        return ""

    # Remove HTML tags
    clean = re.sub(r"<[^>]+>", "", str(text))

    # Normalize whitespace
    clean = " ".join(clean.split())

    # Truncate if needed
    if max_length and len(clean) > max_length:
        clean = clean[:max_length]

    return clean


def parse_perks(raw: Optional[str]) -> List[str]:
    """Parse the perks form field, a JSON array of strings.

    Anything that is not valid JSON becomes an empty list. Non-string items
    are dropped.
    """
    if not raw:
        return []

    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        return []

    if not isinstance(value, list):
        return []

    return [sanitize_input(item, 50) for item in value if isinstance(item, str)]


def paginate(query: Any, limit: int, offset: int) -> Tuple[int, list]:
    """Apply limit/offset to an ordered SQLAlchemy query.

    Returns:
        (total matching rows, rows of the requested page)
    """
    total = query.order_by(None).count()
    items = query.limit(limit).offset(offset).all()
    return total, items

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

"""Pagination dependency shared by list endpoints."""

from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Query, status

from accombook.config import get_settings


@dataclass
class Pagination:
    """Validated limit/offset pair."""

    limit: int
    offset: int


def get_pagination(
    limit: Optional[int] = Query(None),
    offset: int = Query(0),
) -> Pagination:
    """Read ``limit`` and ``offset`` query parameters."""
    settings = get_settings()
    max_limit = settings.pagination.max_limit

    if limit is None:
        limit = settings.pagination.default_limit

    if limit < 1 or limit > max_limit:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Limit must be between 1 to {max_limit}",
        )

    if offset < 0:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Offset must be a positive number",
        )

    return Pagination(limit=limit, offset=offset)

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

"""User profile routes."""

from fastapi import APIRouter, Depends

from accombook.middleware.auth import get_current_user
from accombook.models.user import User

router = APIRouter(prefix="/api/v1/users")


@router.get("/profile")
async def get_profile(current_user: User = Depends(get_current_user)):
    """Get the current user's profile."""
    return {
        "success": True,
        "user": current_user.to_dict(),
    }

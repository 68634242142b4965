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

"""Middleware package."""

from accombook.middleware.auth import get_current_user
from accombook.middleware.pagination import Pagination, get_pagination
from accombook.middleware.rate_limit import rate_limit_middleware
from accombook.middleware.request_context import request_context_middleware

__all__ = [
    "get_current_user",
    "Pagination",
    "get_pagination",
    "rate_limit_middleware",
    "request_context_middleware",
]

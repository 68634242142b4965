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

"""Booking conflict resolution.

Decides whether a candidate booking may be committed for a place, given the
bookings already stored for it. Pure function of its inputs: no I/O, and
business rejections are returned as a ``Decision`` rather than raised.

Checks run in a fixed order and the first failure wins:

1. the requester does not own the place
2. check-in is not in the past and check-out is after check-in
3. no booking of the place overlaps the requested nights
4. no booking of the same user on the place overlaps them
5. the guest count fits the place capacity

Date ranges are half-open ``[check_in, check_out)``; a stay ending on the
day another starts does not conflict.
"""

import enum
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Optional


class RejectionReason(str, enum.Enum):
    """Why a candidate booking was refused."""

    PLACE_NOT_FOUND = "place_not_found"
    SELF_BOOKING = "self_booking"
    PAST_CHECK_IN = "past_check_in"
    INVALID_RANGE = "invalid_range"
    PLACE_CONFLICT = "place_conflict"
    USER_CONFLICT = "user_conflict"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    # Raised by the store at commit time, never by evaluate()
    CONCURRENT_CONFLICT = "concurrent_conflict"


@dataclass(frozen=True)
class BookingCandidate:
    """A proposed booking that has not been persisted."""

    user_id: int
    place_id: int
    check_in: date
    check_out: date
    guests: int


@dataclass(frozen=True)
class Decision:
    """Outcome of evaluating a candidate."""

    reason: Optional[RejectionReason] = None
    detail: Optional[dict] = None

    @property
    def accepted(self) -> bool:
        return self.reason is None

    @classmethod
    def accept(cls) -> "Decision":
        return cls()

    @classmethod
    def reject(cls, reason: RejectionReason, detail: Optional[dict] = None) -> "Decision":
        return cls(reason=reason, detail=detail)


def intervals_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Return True if half-open [a_start, a_end) and [b_start, b_end) intersect."""
    return a_start < b_end and b_start < a_end


def booking_overlaps(existing: Any, check_in: date, check_out: date) -> bool:
    """Check a stored booking against a requested stay.

    Spelled out as the three ways a new stay can collide with an existing one.
    Equivalent to ``intervals_overlap`` for every valid pair of ranges.
    """
    # New stay starts during the existing one
    if existing.check_in <= check_in < existing.check_out:
        return True
    # New stay ends during the existing one
    if existing.check_in < check_out <= existing.check_out:
        return True
    # New stay encompasses the existing one
    if check_in <= existing.check_in and existing.check_out <= check_out:
        return True
    return False


def _conflict_detail(booking: Any) -> dict:
    return {"check_in": booking.check_in, "check_out": booking.check_out}


def evaluate(
    candidate: BookingCandidate,
    place: Any,
    existing_bookings: Iterable[Any],
    today: Optional[date] = None,
) -> Decision:
    """Evaluate a candidate booking.

    Args:
        candidate: The requested booking.
        place: Object exposing ``owner_id`` and ``max_guests``, or None.
        existing_bookings: Bookings stored for ``candidate.place_id``; each
            exposes ``user_id``, ``check_in`` and ``check_out``.
        today: Reference date for the past check-in rule. Defaults to
            ``date.today()``.

    Returns:
        Decision; rejected decisions for overlap reasons carry the
        conflicting booking's dates in ``detail``.
    """
    if place is None:
        return Decision.reject(RejectionReason.PLACE_NOT_FOUND)

    if candidate.user_id == place.owner_id:
        return Decision.reject(RejectionReason.SELF_BOOKING)

    if today is None:
        today = date.today()

    if candidate.check_in < today:
        return Decision.reject(RejectionReason.PAST_CHECK_IN)

    if candidate.check_out <= candidate.check_in:
        return Decision.reject(RejectionReason.INVALID_RANGE)

    # Materialise once; both scans walk the same snapshot
    bookings = list(existing_bookings)

    for booking in bookings:
        if booking_overlaps(booking, candidate.check_in, candidate.check_out):
            return Decision.reject(RejectionReason.PLACE_CONFLICT, _conflict_detail(booking))

    # Same-user overlaps; only reachable if the place scan skips them
    for booking in bookings:
        if booking.user_id != candidate.user_id:
            continue
        if booking_overlaps(booking, candidate.check_in, candidate.check_out):
            return Decision.reject(RejectionReason.USER_CONFLICT, _conflict_detail(booking))

    if candidate.guests > place.max_guests:
        return Decision.reject(RejectionReason.CAPACITY_EXCEEDED)

    return Decision.accept()

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

"""Booking routes."""

from datetime import date, datetime, time, timedelta
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from accombook.config import get_settings
from accombook.database import get_db
from accombook.middleware.auth import get_current_user
from accombook.middleware.pagination import Pagination, get_pagination
from accombook.models.booking import Booking
from accombook.models.place import Place
from accombook.models.user import User
from accombook.services.booking_resolver import (
    BookingCandidate,
    Decision,
    RejectionReason,
    evaluate,
)
from accombook.utils.helpers import paginate, sanitize_input

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/bookings")


class BookingCreate(BaseModel):
    """Booking creation request.

    Date ordering is left to the conflict resolver.
    """

    place_id: int
    check_in: date
    check_out: date
    name: str = Field(min_length=2, max_length=100)
    phone: str = Field(min_length=10, max_length=20, pattern=r"^[\d\s\-+()]+$")
    price: float = Field(gt=0, le=1_000_000)
    guests: int = Field(ge=1, le=50)


def _serialize_interval(detail: dict) -> dict:
    return {key: value.isoformat() for key, value in detail.items()}


def rejection_to_http(decision: Decision, place: Optional[Place] = None) -> HTTPException:
    """Translate a rejected decision into the HTTP error shown to the guest."""
    reason = decision.reason

    if reason == RejectionReason.PLACE_NOT_FOUND:
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Place not found")

    if reason == RejectionReason.SELF_BOOKING:
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot book your own place",
        )

    if reason == RejectionReason.PAST_CHECK_IN:
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Check-in date cannot be in the past",
        )

    if reason == RejectionReason.INVALID_RANGE:
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Check-out date must be after check-in date",
        )

    if reason == RejectionReason.PLACE_CONFLICT:
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": "This place is already booked for the selected dates",
                "reason": reason.value,
                "conflicting_booking": _serialize_interval(decision.detail),
            },
        )

    if reason == RejectionReason.USER_CONFLICT:
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": "You already have a booking for this place on these dates",
                "reason": reason.value,
                "existing_booking": _serialize_interval(decision.detail),
            },
        )

    if reason == RejectionReason.CAPACITY_EXCEEDED:
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Maximum {place.max_guests} guests allowed for this place",
        )

    if reason == RejectionReason.CONCURRENT_CONFLICT:
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": "This place was just booked for overlapping dates",
                "reason": reason.value,
            },
        )

    raise ValueError(f"Unknown rejection reason: {reason}")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_booking(
    data: BookingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Create a new booking."""
    settings = get_settings()

    place = db.query(Place).filter(Place.id == data.place_id).first()
    existing = []
    if place:
        existing = db.query(Booking).filter(Booking.place_id == place.id).all()

    candidate = BookingCandidate(
        user_id=current_user.id,
        place_id=data.place_id,
        check_in=data.check_in,
        check_out=data.check_out,
        guests=data.guests,
    )
    decision = evaluate(candidate, place, existing)

    if not decision.accepted:
        logger.info(
            "booking_rejected",
            place_id=data.place_id,
            reason=decision.reason.value,
        )
        raise rejection_to_http(decision, place)

    # Limits of this deployment, checked once the booking itself is valid
    nights = (data.check_out - data.check_in).days
    if nights > settings.booking.max_nights:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Booking cannot exceed {settings.booking.max_nights} nights",
        )

    # created_at is stored in UTC
    today = datetime.utcnow().date()
    today_bookings = (
        db.query(Booking)
        .filter(
            Booking.user_id == current_user.id,
            Booking.created_at >= datetime.combine(today, time.min),
            Booking.created_at < datetime.combine(today + timedelta(days=1), time.min),
        )
        .count()
    )

    if today_bookings >= settings.booking.max_bookings_per_user_per_day:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Daily booking limit ({settings.booking.max_bookings_per_user_per_day}) reached",
        )

    booking = Booking(
        place_id=place.id,
        user_id=current_user.id,
        check_in=data.check_in,
        check_out=data.check_out,
        name=sanitize_input(data.name, 100),
        phone=data.phone.strip(),
        price=data.price,
        guests=data.guests,
    )
    booking.reserve_nights()
    db.add(booking)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(
            "booking_rejected",
            place_id=place.id,
            reason=RejectionReason.CONCURRENT_CONFLICT.value,
        )
        raise rejection_to_http(Decision.reject(RejectionReason.CONCURRENT_CONFLICT), place)

    db.refresh(booking)

    logger.info(
        "booking_created",
        booking_id=booking.id,
        place_id=place.id,
        nights=nights,
    )

    return {
        "success": True,
        "message": "Booking created successfully",
        "booking": booking.to_dict(include_place=True),
    }


@router.get("")
async def list_my_bookings(
    pagination: Pagination = Depends(get_pagination),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List the current user's bookings, newest first."""
    query = (
        db.query(Booking)
        .options(joinedload(Booking.place))
        .filter(Booking.user_id == current_user.id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    total, bookings = paginate(query, pagination.limit, pagination.offset)

    return {
        "success": True,
        "data": {
            "limit": pagination.limit,
            "offset": pagination.offset,
            "total": total,
            "bookings": [b.to_dict(include_place=True) for b in bookings],
        },
    }


@router.get("/{booking_id}")
async def get_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get booking details. Only the guest who made it may view it."""
    booking = (
        db.query(Booking)
        .options(joinedload(Booking.place))
        .filter(Booking.id == booking_id)
        .first()
    )

    if not booking:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Booking not found",
        )

    if booking.user_id != current_user.id:
        logger.warning("booking_access_denied", booking_id=booking_id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unauthorized to view this booking",
        )

    return {
        "success": True,
        "booking": booking.to_dict(include_place=True),
    }

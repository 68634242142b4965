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

"""Booking models."""

from datetime import datetime, timedelta

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from accombook.database import Base


class Booking(Base):
    """Reservation of a place over the half-open range [check_in, check_out)."""

    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    place_id = Column(Integer, ForeignKey("places.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    check_in = Column(Date, nullable=False)
    check_out = Column(Date, nullable=False)
    name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=False)
    price = Column(Float, nullable=False)
    guests = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("check_out > check_in", name="ck_booking_range"),
        CheckConstraint("guests > 0", name="ck_booking_guests"),
        Index("ix_bookings_place_dates", "place_id", "check_in", "check_out"),
        Index("ix_bookings_user_check_in", "user_id", "check_in"),
    )

    # Relationships
    user = relationship("User", back_populates="bookings")
    place = relationship("Place", back_populates="bookings")
    nights = relationship("BookingNight", back_populates="booking", cascade="all, delete-orphan")

    def reserve_nights(self) -> None:
        """Attach one BookingNight per occupied night.

        Must be called before the first flush; the unique (place_id, night)
        index then rejects any overlapping booking committed concurrently.
        """
        night = self.check_in
        while night < self.check_out:
            self.nights.append(BookingNight(place_id=self.place_id, night=night))
            night += timedelta(days=1)

    def to_dict(self, include_place: bool = False) -> dict:
        """Convert to dictionary."""
        result = {
            "id": self.id,
            "place_id": self.place_id,
            "user_id": self.user_id,
            "check_in": self.check_in.isoformat() if self.check_in else None,
            "check_out": self.check_out.isoformat() if self.check_out else None,
            "name": self.name,
            "phone": self.phone,
            "price": self.price,
            "guests": self.guests,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

        if include_place and self.place:
            result["place"] = self.place.to_dict()

        return result

    def __repr__(self):
        return (
            f"<Booking(id={self.id}, place_id={self.place_id}, user_id={self.user_id}, "
            f"check_in={self.check_in}, check_out={self.check_out})>"
        )


class BookingNight(Base):
    """A single night held by a booking."""

    __tablename__ = "booking_nights"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    place_id = Column(Integer, ForeignKey("places.id", ondelete="CASCADE"), nullable=False)
    night = Column(Date, nullable=False)

    __table_args__ = (
        UniqueConstraint("place_id", "night", name="uq_booking_night_place_night"),
    )

    # Relationships
    booking = relationship("Booking", back_populates="nights")

    def __repr__(self):
        return f"<BookingNight(place_id={self.place_id}, night={self.night})>"

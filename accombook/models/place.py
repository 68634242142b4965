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

"""Place (listing) model."""

from datetime import datetime

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from accombook.database import Base


class Place(Base):
    """Accommodation listed by a user."""

    __tablename__ = "places"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(50), nullable=False)
    address = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    perks = Column(JSON, nullable=False, default=list)
    extra_info = Column(String(50), nullable=True)
    check_in_hour = Column(Integer, nullable=False)
    check_out_hour = Column(Integer, nullable=False)
    max_guests = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    photos = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("max_guests > 0", name="ck_place_max_guests"),
        CheckConstraint("check_in_hour BETWEEN 0 AND 23", name="ck_place_check_in_hour"),
        CheckConstraint("check_out_hour BETWEEN 0 AND 23", name="ck_place_check_out_hour"),
    )

    # Relationships
    owner = relationship("User", back_populates="places")
    bookings = relationship("Booking", back_populates="place", cascade="all, delete-orphan")

    def to_dict(self, include_owner: bool = False) -> dict:
        """Convert to dictionary."""
        result = {
            "id": self.id,
            "owner_id": self.owner_id,
            "title": self.title,
            "address": self.address,
            "description": self.description,
            "perks": list(self.perks or []),
            "extra_info": self.extra_info,
            "check_in_hour": self.check_in_hour,
            "check_out_hour": self.check_out_hour,
            "max_guests": self.max_guests,
            "price": self.price,
            "photos": list(self.photos or []),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

        if include_owner and self.owner:
            result["owner_name"] = self.owner.fullname

        return result

    def __repr__(self):
        return f"<Place(id={self.id}, owner_id={self.owner_id}, title='{self.title}')>"

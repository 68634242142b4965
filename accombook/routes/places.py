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

"""Place (listing) management routes."""

from typing import List, Optional, Tuple

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from accombook.config import get_settings
from accombook.database import get_db
from accombook.middleware.auth import get_current_user
from accombook.middleware.pagination import Pagination, get_pagination
from accombook.models.place import Place
from accombook.models.user import User
from accombook.services.photos import (
    PhotoStorage,
    PhotoUploadError,
    PhotoValidationError,
    get_photo_storage,
)
from accombook.utils.helpers import paginate, parse_perks, sanitize_input

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/places")

MAX_PERKS = 15


def _checked_perks(raw: Optional[str]) -> List[str]:
    perks = parse_perks(raw)
    if len(perks) > MAX_PERKS:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Maximum {MAX_PERKS} perks allowed",
        )
    return perks


async def _read_photos(photos: List[UploadFile]) -> List[Tuple[bytes, Optional[str]]]:
    return [(await photo.read(), photo.content_type) for photo in photos]


async def _commit_with_photos(db: Session, storage: PhotoStorage, new_urls: List[str]) -> None:
    """Commit, removing just-uploaded photos again if the commit fails."""
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        if new_urls:
            await run_in_threadpool(storage.delete_many, new_urls)
        raise


async def _store_photos(
    storage: PhotoStorage, files: List[Tuple[bytes, Optional[str]]]
) -> List[str]:
    """Upload photos off the event loop and map failures to HTTP errors."""
    try:
        return await run_in_threadpool(storage.upload_many, files)
    except PhotoValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    except PhotoUploadError:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to upload photos",
        )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_place(
    title: str = Form(..., min_length=3, max_length=50),
    address: str = Form(..., min_length=5, max_length=200),
    description: str = Form(..., min_length=10, max_length=100),
    perks: Optional[str] = Form(None),
    extra_info: Optional[str] = Form(None, max_length=50),
    check_in_hour: int = Form(..., ge=0, le=23),
    check_out_hour: int = Form(..., ge=0, le=23),
    max_guests: int = Form(..., ge=1, le=50),
    price: float = Form(..., gt=0, le=1_000_000),
    photos: List[UploadFile] = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: PhotoStorage = Depends(get_photo_storage),
):
    """List a new place with its photos."""
    settings = get_settings()
    max_photos = settings.photos.max_per_place

    perk_list = _checked_perks(perks)

    if not photos:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No photos uploaded",
        )

    if len(photos) > max_photos:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Too many files. Maximum {max_photos} photos",
        )

    photo_urls = await _store_photos(storage, await _read_photos(photos))

    place = Place(
        owner_id=current_user.id,
        title=sanitize_input(title, 50),
        address=sanitize_input(address, 200),
        description=sanitize_input(description, 100),
        perks=perk_list,
        extra_info=sanitize_input(extra_info, 50) if extra_info else None,
        check_in_hour=check_in_hour,
        check_out_hour=check_out_hour,
        max_guests=max_guests,
        price=price,
        photos=photo_urls,
    )
    db.add(place)
    await _commit_with_photos(db, storage, photo_urls)
    db.refresh(place)

    logger.info("place_created", place_id=place.id, owner_id=current_user.id, photos=len(photo_urls))

    return {
        "success": True,
        "message": "Place created successfully",
        "place": place.to_dict(),
    }


@router.get("")
async def list_places(
    pagination: Pagination = Depends(get_pagination),
    db: Session = Depends(get_db),
):
    """List all places, newest first."""
    query = db.query(Place).order_by(Place.created_at.desc(), Place.id.desc())
    total, places = paginate(query, pagination.limit, pagination.offset)

    return {
        "success": True,
        "data": {
            "limit": pagination.limit,
            "offset": pagination.offset,
            "total": total,
            "places": [p.to_dict() for p in places],
        },
    }


@router.get("/mine")
async def list_my_places(
    pagination: Pagination = Depends(get_pagination),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List the current user's places, newest first."""
    query = (
        db.query(Place)
        .filter(Place.owner_id == current_user.id)
        .order_by(Place.created_at.desc(), Place.id.desc())
    )
    total, places = paginate(query, pagination.limit, pagination.offset)

    return {
        "success": True,
        "data": {
            "limit": pagination.limit,
            "offset": pagination.offset,
            "total": total,
            "places": [p.to_dict() for p in places],
        },
    }


@router.get("/{place_id}")
async def get_place(
    place_id: int,
    db: Session = Depends(get_db),
):
    """Get place details."""
    place = db.query(Place).filter(Place.id == place_id).first()

    if not place:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Place not found",
        )

    return {
        "success": True,
        "place": place.to_dict(include_owner=True),
    }


@router.put("/{place_id}")
async def update_place(
    place_id: int,
    title: Optional[str] = Form(None, min_length=3, max_length=50),
    address: Optional[str] = Form(None, min_length=5, max_length=200),
    description: Optional[str] = Form(None, min_length=10, max_length=100),
    perks: Optional[str] = Form(None),
    extra_info: Optional[str] = Form(None, max_length=50),
    check_in_hour: Optional[int] = Form(None, ge=0, le=23),
    check_out_hour: Optional[int] = Form(None, ge=0, le=23),
    max_guests: Optional[int] = Form(None, ge=1, le=50),
    price: Optional[float] = Form(None, gt=0, le=1_000_000),
    photos: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: PhotoStorage = Depends(get_photo_storage),
):
    """Update a place. Only the owner may update; new photos are appended."""
    settings = get_settings()
    max_photos = settings.photos.max_per_place

    updates = {
        "title": sanitize_input(title, 50) if title is not None else None,
        "address": sanitize_input(address, 200) if address is not None else None,
        "description": sanitize_input(description, 100) if description is not None else None,
        "perks": _checked_perks(perks) if perks is not None else None,
        "extra_info": sanitize_input(extra_info, 50) if extra_info is not None else None,
        "check_in_hour": check_in_hour,
        "check_out_hour": check_out_hour,
        "max_guests": max_guests,
        "price": price,
    }
    updates = {key: value for key, value in updates.items() if value is not None}
    photos = photos or []

    if not updates and not photos:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one field must be provided for update",
        )

    place = db.query(Place).filter(Place.id == place_id).first()

    if not place:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Place not found",
        )

    if place.owner_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unauthorized to update this place",
        )

    new_urls: List[str] = []
    if photos:
        current_count = len(place.photos or [])
        if current_count + len(photos) > max_photos:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=(
                    f"Maximum {max_photos} photos allowed. You have {current_count} photos "
                    f"and tried to add {len(photos)} more."
                ),
            )
        new_urls = await _store_photos(storage, await _read_photos(photos))
        # Reassign so the JSON column is marked dirty
        updates["photos"] = list(place.photos or []) + new_urls

    for key, value in updates.items():
        setattr(place, key, value)

    await _commit_with_photos(db, storage, new_urls)
    db.refresh(place)

    logger.info("place_updated", place_id=place.id, fields=sorted(updates))

    return {
        "success": True,
        "message": "Place updated successfully",
        "place": place.to_dict(),
    }

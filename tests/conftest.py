"""Shared test fixtures and helpers."""

from datetime import date, timedelta
from io import BytesIO
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from accombook import database
from accombook.config import DatabaseConfig, SecurityConfig, Settings, update_settings
from accombook.main import app
from accombook.middleware.rate_limit import limiter
from accombook.models.booking import Booking
from accombook.models.place import Place
from accombook.models.user import User
from accombook.services.photos import PhotoStorage, get_photo_storage
from accombook.services.security import create_access_token, hash_password

TEST_PASSWORD = "correct-horse-battery"


class FakeS3Client:
    """Records put_object and delete_object calls instead of talking to a bucket."""

    def __init__(self, error: Optional[Exception] = None, fail_after: int = 0):
        self.objects = {}
        self.deleted = []
        self.error = error
        self.fail_after = fail_after

    def put_object(self, **kwargs):
        if self.error is not None and len(self.objects) >= self.fail_after:
            raise self.error
        self.objects[kwargs["Key"]] = kwargs
        return {"ETag": '"fake"'}

    def delete_object(self, Bucket, Key):
        self.objects.pop(Key, None)
        self.deleted.append(Key)
        return {}


def image_bytes(fmt: str = "PNG", size=(4, 4)) -> bytes:
    """Encode a tiny solid-colour image."""
    buf = BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def settings(tmp_path):
    settings = Settings(
        database=DatabaseConfig(path=str(tmp_path / "test.db")),
        security=SecurityConfig(jwt_secret="test-secret", bcrypt_rounds=4),
    )
    update_settings(settings)
    limiter.reset()
    database.init_engine()
    database.create_tables()
    yield settings
    database.get_engine().dispose()


@pytest.fixture
def db(settings):
    session = database.get_session_local()()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def s3_client():
    return FakeS3Client()


@pytest.fixture
def photo_storage(settings, s3_client):
    return PhotoStorage(settings.photos, client=s3_client)


@pytest.fixture
def client(settings, photo_storage):
    app.dependency_overrides[get_photo_storage] = lambda: photo_storage
    # https so the secure refresh cookie is sent back
    yield TestClient(app, base_url="https://testserver")
    app.dependency_overrides.clear()


@pytest.fixture
def today():
    return date.today()


def make_user(db, email: str = "guest@example.com", fullname: str = "Test Guest") -> User:
    user = User(fullname=fullname, email=email, password_hash=hash_password(TEST_PASSWORD))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def make_place(db, owner: User, max_guests: int = 4, title: str = "Sea view flat") -> Place:
    place = Place(
        owner_id=owner.id,
        title=title,
        address="12 Harbour Road, Kotor",
        description="Bright flat with a balcony over the bay",
        perks=["wifi", "parking"],
        check_in_hour=14,
        check_out_hour=11,
        max_guests=max_guests,
        price=85.0,
        photos=["https://cdn.example.com/places/a.jpg"],
    )
    db.add(place)
    db.commit()
    db.refresh(place)
    return place


def make_booking(db, place: Place, user: User, check_in: date, check_out: date, guests: int = 2) -> Booking:
    booking = Booking(
        place_id=place.id,
        user_id=user.id,
        check_in=check_in,
        check_out=check_out,
        name=user.fullname,
        phone="+382 67 123 456",
        price=170.0,
        guests=guests,
    )
    booking.reserve_nights()
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking


@pytest.fixture
def owner(db):
    return make_user(db, email="owner@example.com", fullname="Place Owner")


@pytest.fixture
def guest(db):
    return make_user(db, email="guest@example.com", fullname="Test Guest")


@pytest.fixture
def place(db, owner):
    return make_place(db, owner)


def days_from(start: date, n: int) -> date:
    return start + timedelta(days=n)

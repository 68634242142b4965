"""Tests for the booking endpoints."""

from datetime import date, datetime, time, timedelta

from sqlalchemy import inspect

from accombook import database
from accombook.models.booking import Booking, BookingNight
from accombook.routes.bookings import rejection_to_http
from accombook.services.booking_resolver import Decision, RejectionReason

from tests.conftest import auth_headers, days_from, make_booking, make_place, make_user

URL = "/api/v1/bookings"


def booking_payload(place_id, check_in, check_out, guests=2, **overrides):
    payload = {
        "place_id": place_id,
        "check_in": check_in.isoformat(),
        "check_out": check_out.isoformat(),
        "name": "Test Guest",
        "phone": "+382 67 123 456",
        "price": "170",
        "guests": guests,
    }
    payload.update(overrides)
    return payload


class TestCreateBooking:
    def test_creates_booking_and_reserves_nights(self, client, db, place, guest, today):
        check_in, check_out = days_from(today, 10), days_from(today, 13)

        response = client.post(
            URL, json=booking_payload(place.id, check_in, check_out), headers=auth_headers(guest)
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["booking"]["check_in"] == check_in.isoformat()
        assert body["booking"]["user_id"] == guest.id
        assert body["booking"]["place"]["id"] == place.id

        nights = db.query(BookingNight).filter(BookingNight.place_id == place.id).all()
        assert sorted(n.night for n in nights) == [
            days_from(today, 10),
            days_from(today, 11),
            days_from(today, 12),
        ]

    def test_requires_authentication(self, client, place, today):
        response = client.post(
            URL, json=booking_payload(place.id, days_from(today, 1), days_from(today, 2))
        )

        assert response.status_code == 401

    def test_unknown_place(self, client, guest, today):
        response = client.post(
            URL,
            json=booking_payload(9999, days_from(today, 1), days_from(today, 2)),
            headers=auth_headers(guest),
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Place not found"

    def test_owner_cannot_book_own_place(self, client, place, owner, today):
        response = client.post(
            URL,
            json=booking_payload(place.id, days_from(today, 1), days_from(today, 2)),
            headers=auth_headers(owner),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "You cannot book your own place"

    def test_check_in_in_the_past(self, client, place, guest, today):
        response = client.post(
            URL,
            json=booking_payload(place.id, days_from(today, -1), days_from(today, 2)),
            headers=auth_headers(guest),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Check-in date cannot be in the past"

    def test_check_out_before_check_in(self, client, place, guest, today):
        response = client.post(
            URL,
            json=booking_payload(place.id, days_from(today, 5), days_from(today, 5)),
            headers=auth_headers(guest),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Check-out date must be after check-in date"

    def test_overlap_returns_conflicting_dates(self, client, db, place, guest, today):
        other = make_user(db, email="other@example.com")
        make_booking(db, place, other, days_from(today, 10), days_from(today, 15))

        response = client.post(
            URL,
            json=booking_payload(place.id, days_from(today, 12), days_from(today, 18)),
            headers=auth_headers(guest),
        )

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["reason"] == "place_conflict"
        assert detail["conflicting_booking"] == {
            "check_in": days_from(today, 10).isoformat(),
            "check_out": days_from(today, 15).isoformat(),
        }

    def test_back_to_back_is_accepted(self, client, db, place, guest, today):
        other = make_user(db, email="other@example.com")
        make_booking(db, place, other, days_from(today, 10), days_from(today, 15))

        response = client.post(
            URL,
            json=booking_payload(place.id, days_from(today, 15), days_from(today, 18)),
            headers=auth_headers(guest),
        )

        assert response.status_code == 201

    def test_too_many_guests(self, client, db, owner, guest, today):
        small = make_place(db, owner, max_guests=2, title="Tiny studio")

        response = client.post(
            URL,
            json=booking_payload(small.id, days_from(today, 1), days_from(today, 3), guests=3),
            headers=auth_headers(guest),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Maximum 2 guests allowed for this place"

    def test_stale_snapshot_is_caught_by_night_constraint(
        self, client, db, place, guest, today, monkeypatch
    ):
        other = make_user(db, email="other@example.com")
        make_booking(db, place, other, days_from(today, 10), days_from(today, 15))
        # Simulate a concurrent request that evaluated before the booking above was stored
        monkeypatch.setattr(
            "accombook.routes.bookings.evaluate", lambda *args, **kwargs: Decision.accept()
        )

        response = client.post(
            URL,
            json=booking_payload(place.id, days_from(today, 14), days_from(today, 16)),
            headers=auth_headers(guest),
        )

        assert response.status_code == 409
        assert response.json()["detail"]["reason"] == "concurrent_conflict"
        db.expire_all()
        assert db.query(Booking).filter(Booking.place_id == place.id).count() == 1

    def test_stay_longer_than_limit(self, client, settings, place, guest, today):
        settings.booking.max_nights = 7

        response = client.post(
            URL,
            json=booking_payload(place.id, days_from(today, 1), days_from(today, 9)),
            headers=auth_headers(guest),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Booking cannot exceed 7 nights"

    def test_daily_booking_limit(self, client, db, settings, owner, place, guest, today):
        settings.booking.max_bookings_per_user_per_day = 1
        other_place = make_place(db, owner, title="Garden cottage")
        make_booking(db, other_place, guest, days_from(today, 1), days_from(today, 2))

        response = client.post(
            URL,
            json=booking_payload(place.id, days_from(today, 1), days_from(today, 2)),
            headers=auth_headers(guest),
        )

        assert response.status_code == 429

    def test_daily_limit_counts_the_current_utc_day(
        self, client, db, settings, owner, place, guest, today
    ):
        settings.booking.max_bookings_per_user_per_day = 1
        other_place = make_place(db, owner, title="Garden cottage")
        earlier = make_booking(db, other_place, guest, days_from(today, 1), days_from(today, 2))
        utc_midnight = datetime.combine(datetime.utcnow().date(), time.min)
        earlier.created_at = utc_midnight - timedelta(minutes=1)
        db.commit()

        response = client.post(
            URL,
            json=booking_payload(place.id, days_from(today, 1), days_from(today, 2)),
            headers=auth_headers(guest),
        )

        assert response.status_code == 201

    def test_rejects_malformed_phone(self, client, place, guest, today):
        response = client.post(
            URL,
            json=booking_payload(
                place.id, days_from(today, 1), days_from(today, 2), phone="call me maybe"
            ),
            headers=auth_headers(guest),
        )

        assert response.status_code == 422

    def test_rejects_zero_guests(self, client, place, guest, today):
        response = client.post(
            URL,
            json=booking_payload(place.id, days_from(today, 1), days_from(today, 2), guests=0),
            headers=auth_headers(guest),
        )

        assert response.status_code == 422


class TestListBookings:
    def test_lists_only_own_bookings_newest_first(self, client, db, owner, guest, today):
        other = make_user(db, email="other@example.com")
        first = make_place(db, owner, title="First flat")
        second = make_place(db, owner, title="Second flat")
        older = make_booking(db, first, guest, days_from(today, 1), days_from(today, 3))
        newer = make_booking(db, second, guest, days_from(today, 5), days_from(today, 7))
        make_booking(db, first, other, days_from(today, 10), days_from(today, 12))

        response = client.get(URL, headers=auth_headers(guest))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total"] == 2
        assert data["limit"] == 10
        assert data["offset"] == 0
        assert [b["id"] for b in data["bookings"]] == [newer.id, older.id]
        assert data["bookings"][0]["place"]["title"] == "Second flat"

    def test_pagination(self, client, db, place, guest, today):
        for start in (1, 4, 7):
            make_booking(db, place, guest, days_from(today, start), days_from(today, start + 2))

        response = client.get(URL, params={"limit": 2, "offset": 2}, headers=auth_headers(guest))

        data = response.json()["data"]
        assert data["total"] == 3
        assert len(data["bookings"]) == 1

    def test_limit_out_of_range(self, client, guest):
        response = client.get(URL, params={"limit": 51}, headers=auth_headers(guest))

        assert response.status_code == 422


class TestGetBooking:
    def test_guest_sees_own_booking(self, client, db, place, guest, today):
        booking = make_booking(db, place, guest, days_from(today, 1), days_from(today, 2))

        response = client.get(f"{URL}/{booking.id}", headers=auth_headers(guest))

        assert response.status_code == 200
        assert response.json()["booking"]["id"] == booking.id

    def test_other_user_is_forbidden(self, client, db, place, guest, owner, today):
        booking = make_booking(db, place, guest, days_from(today, 1), days_from(today, 2))

        response = client.get(f"{URL}/{booking.id}", headers=auth_headers(owner))

        assert response.status_code == 403

    def test_missing_booking(self, client, guest):
        response = client.get(f"{URL}/424242", headers=auth_headers(guest))

        assert response.status_code == 404


class TestRejectionMapping:
    def test_user_conflict_reports_existing_booking(self, place):
        decision = Decision.reject(
            RejectionReason.USER_CONFLICT,
            {"check_in": date(2025, 6, 10), "check_out": date(2025, 6, 15)},
        )

        error = rejection_to_http(decision, place)

        assert error.status_code == 409
        assert error.detail == {
            "message": "You already have a booking for this place on these dates",
            "reason": "user_conflict",
            "existing_booking": {"check_in": "2025-06-10", "check_out": "2025-06-15"},
        }

    def test_concurrent_conflict(self, place):
        error = rejection_to_http(Decision.reject(RejectionReason.CONCURRENT_CONFLICT), place)

        assert error.status_code == 409
        assert error.detail["reason"] == "concurrent_conflict"


class TestBookingIndexes:
    def test_lookup_indexes_exist(self, settings):
        indexes = {
            index["name"]: index["column_names"]
            for index in inspect(database.get_engine()).get_indexes("bookings")
        }

        assert indexes["ix_bookings_place_dates"] == ["place_id", "check_in", "check_out"]
        assert indexes["ix_bookings_user_check_in"] == ["user_id", "check_in"]

"""Tests for application-wide middleware and the health check."""

from accombook import __version__
from accombook.middleware.rate_limit import SlidingWindowLimiter

PLACES = "/api/v1/places"


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": __version__}


class TestRequestId:
    def test_echoes_given_request_id(self, client):
        response = client.get(PLACES, headers={"X-Request-ID": "req-abc-123"})

        assert response.headers["X-Request-ID"] == "req-abc-123"

    def test_generates_request_id(self, client):
        first = client.get(PLACES).headers["X-Request-ID"]
        second = client.get(PLACES).headers["X-Request-ID"]

        assert first
        assert first != second

    def test_error_responses_carry_request_id(self, client):
        response = client.get(f"{PLACES}/424242", headers={"X-Request-ID": "lost-place"})

        assert response.status_code == 404
        assert response.headers["X-Request-ID"] == "lost-place"


class TestRateLimit:
    def test_too_many_requests(self, client, settings):
        settings.rate_limit.max_requests = 3

        statuses = [client.get(PLACES).status_code for _ in range(4)]

        assert statuses == [200, 200, 200, 429]

    def test_throttled_response(self, client, settings):
        settings.rate_limit.max_requests = 1
        settings.rate_limit.window_seconds = 30
        client.get(PLACES)

        response = client.get(PLACES, headers={"X-Request-ID": "slow-down"})

        assert response.status_code == 429
        assert response.json()["detail"] == "Too many requests, please try again later"
        assert 1 <= int(response.headers["Retry-After"]) <= 30
        assert response.headers["X-Request-ID"] == "slow-down"

    def test_health_is_not_limited(self, client, settings):
        settings.rate_limit.max_requests = 1

        statuses = [client.get("/health").status_code for _ in range(3)]

        assert statuses == [200, 200, 200]

    def test_disabled(self, client, settings):
        settings.rate_limit.enabled = False
        settings.rate_limit.max_requests = 1

        statuses = [client.get(PLACES).status_code for _ in range(3)]

        assert statuses == [200, 200, 200]


class TestSlidingWindowLimiter:
    def test_window_slides(self):
        limiter = SlidingWindowLimiter()

        assert limiter.hit("1.2.3.4", 2, 60, now=0) == 0
        assert limiter.hit("1.2.3.4", 2, 60, now=10) == 0
        assert limiter.hit("1.2.3.4", 2, 60, now=20) == 40
        # First hit leaves the window at t=60
        assert limiter.hit("1.2.3.4", 2, 60, now=60) == 0

    def test_clients_are_counted_separately(self):
        limiter = SlidingWindowLimiter()

        assert limiter.hit("1.2.3.4", 1, 60, now=0) == 0
        assert limiter.hit("5.6.7.8", 1, 60, now=0) == 0
        assert limiter.hit("1.2.3.4", 1, 60, now=1) == 59

    def test_reset(self):
        limiter = SlidingWindowLimiter()
        limiter.hit("1.2.3.4", 1, 60, now=0)

        limiter.reset()

        assert limiter.hit("1.2.3.4", 1, 60, now=1) == 0

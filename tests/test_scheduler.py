"""Tests for background cleanup."""

from datetime import datetime, timedelta

from accombook.models.auth import RefreshToken
from accombook.services.scheduler import run_daily_cleanup


def add_token(db, user, token, expires_at):
    db.add(RefreshToken(user_id=user.id, token=token, expires_at=expires_at))
    db.commit()


def test_cleanup_deletes_only_long_expired_tokens(db, settings, guest):
    now = datetime.utcnow()
    add_token(db, guest, "old", now - timedelta(days=30))
    add_token(db, guest, "recently-expired", now - timedelta(days=1))
    add_token(db, guest, "live", now + timedelta(days=3))

    result = run_daily_cleanup(db)

    assert result == {"expired_refresh_tokens_deleted": 1}
    remaining = sorted(t.token for t in db.query(RefreshToken).all())
    assert remaining == ["live", "recently-expired"]

"""
test_dependencies.py — Tests for shared FastAPI dependencies.

Tests session resolution and role-based access.
Uses in-memory SQLite via conftest fixtures.

Called by: pytest
Depends on: app/dependencies.py, conftest.py
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException

from app.dependencies import (
    BLOCKED_STATUSES,
    get_user,
    is_admin,
    require_admin,
    require_provider,
    require_user,
)

# ── Helpers ─────────────────────────────────────────────────────────


def _mock_request(session_data=None):
    req = MagicMock()
    req.session = dict(session_data or {})
    return req


# ── get_user ────────────────────────────────────────────────────────


class TestGetUser:
    def test_returns_user_when_session_has_id(self, db_session, test_user):
        request = _mock_request({"user_id": test_user.id})
        user = get_user(request, db_session)
        assert user is not None
        assert user.id == test_user.id

    def test_returns_none_when_no_session(self, db_session):
        assert get_user(_mock_request({}), db_session) is None

    def test_returns_none_when_user_not_found(self, db_session):
        request = _mock_request({"user_id": "no-such-profile"})
        assert get_user(request, db_session) is None
        assert request.session == {}

    def test_soft_deleted_user_clears_session(self, db_session, test_user):
        test_user.deleted_at = datetime.now(timezone.utc)
        db_session.commit()
        request = _mock_request({"user_id": test_user.id})
        assert get_user(request, db_session) is None
        assert request.session == {}


# ── require_* ───────────────────────────────────────────────────────


class TestRequireUser:
    def test_anonymous_is_401(self, db_session):
        with pytest.raises(HTTPException) as exc:
            require_user(_mock_request(), db_session)
        assert exc.value.status_code == 401

    @pytest.mark.parametrize("status", sorted(BLOCKED_STATUSES))
    def test_blocked_status_is_403(self, db_session, test_user, status):
        test_user.status = status
        db_session.commit()
        request = _mock_request({"user_id": test_user.id})
        with pytest.raises(HTTPException) as exc:
            require_user(request, db_session)
        assert exc.value.status_code == 403
        assert exc.value.detail == BLOCKED_STATUSES[status]
        assert request.session == {}

    def test_pending_account_allowed(self, db_session, pending_provider):
        request = _mock_request({"user_id": pending_provider.user_id})
        assert require_user(request, db_session).status == "pending"


class TestRoles:
    def test_is_admin(self, admin_user, test_user):
        assert is_admin(admin_user) is True
        assert is_admin(test_user) is False

    def test_require_admin_rejects_provider(self, db_session, provider_user):
        with pytest.raises(HTTPException) as exc:
            require_admin(_mock_request({"user_id": provider_user.id}), db_session)
        assert exc.value.status_code == 403

    def test_require_provider_allows_admin(self, db_session, admin_user):
        user = require_provider(_mock_request({"user_id": admin_user.id}), db_session)
        assert user.id == admin_user.id

    def test_require_provider_rejects_regular_user(self, db_session, test_user):
        with pytest.raises(HTTPException) as exc:
            require_provider(_mock_request({"user_id": test_user.id}), db_session)
        assert exc.value.detail == "Provider account required"

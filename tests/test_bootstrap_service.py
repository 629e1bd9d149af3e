"""
Bootstrap Service Unit Tests

Tests for the startup administrator account.
"""

import pytest


class TestEnsureAdminUser:
    """Tests for ensure_admin_user."""

    @pytest.mark.asyncio
    async def test_creates_admin_when_absent(self, mock_async_session):
        import bcrypt
        from pathway.core.config import settings
        from pathway.models.enums import UserRole
        from pathway.services.bootstrap_service import ensure_admin_user

        mock_async_session.execute.return_value.scalar_one_or_none.return_value = None

        user = await ensure_admin_user(mock_async_session)

        mock_async_session.add.assert_called_once_with(user)
        mock_async_session.commit.assert_awaited_once()
        assert user.email == settings.ADMIN_EMAIL.lower()
        assert user.role == UserRole.ADMIN
        assert bcrypt.checkpw(settings.ADMIN_PASSWORD.encode("utf-8"), user.password_hash.encode("utf-8"))

    @pytest.mark.asyncio
    async def test_existing_admin_is_left_alone(self, mock_async_session, admin_user):
        from pathway.services.bootstrap_service import ensure_admin_user

        mock_async_session.execute.return_value.scalar_one_or_none.return_value = admin_user

        first = await ensure_admin_user(mock_async_session)
        second = await ensure_admin_user(mock_async_session)

        assert first is second is admin_user
        mock_async_session.add.assert_not_called()
        mock_async_session.commit.assert_not_awaited()
        assert admin_user.password_hash == "x"

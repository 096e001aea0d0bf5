"""
Unit Test Fixtures.

Fixtures for unit tests - external dependencies are mocked.
Unit tests should be fast and isolated, never touching Redis.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest


# =============================================================================
# Database Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_db_session() -> AsyncMock:
    """
    Mock database session for unit tests.

    Usage:
        def test_repository(mock_db_session: AsyncMock):
            repo = PinRepository(mock_db_session)
    """
    session = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    session.execute = AsyncMock()
    session.add = MagicMock()
    session.delete = AsyncMock()
    return session


# =============================================================================
# Settings Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_app_config() -> MagicMock:
    """
    Mock YAML application configuration.

    Usage:
        def test_with_config(mock_app_config):
            with patch("notekeeper.core.config.get_app_config", return_value=mock_app_config):
                # Test code that uses app config
    """
    config = MagicMock()
    config.application.deep_link_scheme = "noteapp"
    config.notes.retention_days = 30
    config.notes.snippet_max_length = 200
    config.notes.preview_title_length = 40
    config.mirror.backend = "memory"
    config.mirror.placeholder = "Pin a note from the app"
    config.mirror.keys.notes_map = "widget.notes.map"
    config.mirror.keys.selected_id = "widget.selected.id"
    config.mirror.keys.changed_channel = "widget.changed"
    config.mirror.redis.host = "localhost"
    config.resilience.mirror_timeout_seconds = 1.0
    config.resilience.retry.max_attempts = 2
    config.resilience.retry.backoff_multiplier = 0
    config.resilience.retry.backoff_max = 0
    config.resilience.circuit_breaker.fail_max = 5
    config.resilience.circuit_breaker.timeout_duration = 30
    return config

"""
Unit tests for connection helpers (no database required)
"""
from unittest.mock import MagicMock, patch

import psycopg2
import pytest

from bazaar.core.database import (
    get_db_connection_dict_with_retry,
    transaction,
    use_connection,
)


class TestRetry:

    @patch('bazaar.core.database.time.sleep')
    @patch('bazaar.core.database.get_db_connection_dict')
    def test_retries_with_exponential_backoff(self, mock_get_conn, mock_sleep):
        # Arrange
        conn = MagicMock()
        mock_get_conn.side_effect = [
            psycopg2.OperationalError("timeout"),
            psycopg2.OperationalError("timeout"),
            conn,
        ]

        # Act
        result = get_db_connection_dict_with_retry(max_retries=3, retry_delay=0.5)

        # Assert
        assert result is conn
        assert [c.args[0] for c in mock_sleep.call_args_list] == [0.5, 1.0]

    @patch('bazaar.core.database.time.sleep')
    @patch('bazaar.core.database.get_db_connection_dict')
    def test_raises_after_last_attempt(self, mock_get_conn, mock_sleep):
        mock_get_conn.side_effect = psycopg2.OperationalError("down")

        with pytest.raises(psycopg2.OperationalError):
            get_db_connection_dict_with_retry(max_retries=2, retry_delay=0)

        assert mock_get_conn.call_count == 2


class TestTransaction:

    @patch('bazaar.core.database.get_db_connection_dict')
    def test_commits_on_success(self, mock_get_conn):
        conn = MagicMock()
        mock_get_conn.return_value = conn

        with transaction() as db:
            assert db is conn

        conn.commit.assert_called_once()
        conn.rollback.assert_not_called()
        conn.close.assert_called_once()

    @patch('bazaar.core.database.get_db_connection_dict')
    def test_rolls_back_on_error(self, mock_get_conn):
        conn = MagicMock()
        mock_get_conn.return_value = conn

        with pytest.raises(ValueError):
            with transaction():
                raise ValueError("boom")

        conn.commit.assert_not_called()
        conn.rollback.assert_called_once()
        conn.close.assert_called_once()


class TestUseConnection:

    def test_borrowed_connection_is_left_open(self):
        conn = MagicMock()

        with use_connection(conn) as db:
            assert db is conn

        conn.commit.assert_not_called()
        conn.close.assert_not_called()

    @patch('bazaar.core.database.get_db_connection_dict')
    def test_own_connection_is_committed_and_closed(self, mock_get_conn):
        conn = MagicMock()
        mock_get_conn.return_value = conn

        with use_connection() as db:
            assert db is conn

        conn.commit.assert_called_once()
        conn.close.assert_called_once()

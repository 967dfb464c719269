"""
Tests for connectivity checking and the connectivity signal source.

Tests the internet connectivity check including:
- Successful connection scenarios
- Fallback to alternative DNS servers
- Connection failures
- Change detection in ConnectivitySignalSource
"""

import pytest
import socket
from unittest.mock import patch, Mock
from pathlib import Path

# Add parent directory to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from quiz_session.connectivity import DNS_HOSTS, check_internet_connectivity
from quiz_session.signals import ConnectivitySignalSource, Signal


class TestConnectivitySuccess:
    """Test successful connectivity scenarios."""

    @patch('socket.create_connection')
    def test_first_host_success(self, mock_connection):
        """Test successful connection to Cloudflare DNS."""
        mock_connection.return_value = Mock()

        result = check_internet_connectivity()

        assert result is True
        mock_connection.assert_called_once_with(("1.1.1.1", 53), timeout=2.0)

    @patch('socket.create_connection')
    def test_custom_timeout(self, mock_connection):
        mock_connection.return_value = Mock()

        result = check_internet_connectivity(timeout=5.0)

        assert result is True
        mock_connection.assert_called_once_with(("1.1.1.1", 53), timeout=5.0)

    @patch('socket.create_connection')
    def test_connection_is_closed(self, mock_connection):
        """Test that the connectivity check socket does not leak."""
        mock_conn = Mock()
        mock_connection.return_value = mock_conn

        check_internet_connectivity()

        mock_conn.close.assert_called_once()


class TestConnectivityFallback:
    """Test fallback mechanism to alternative DNS servers."""

    @pytest.mark.parametrize("failures", [1, 2, 3])
    @patch('socket.create_connection')
    def test_fallback(self, mock_connection, failures):
        mock_connection.side_effect = [OSError("Connection failed")] * failures + [Mock()]

        result = check_internet_connectivity()

        assert result is True
        assert mock_connection.call_count == failures + 1
        tried = [call[0][0] for call in mock_connection.call_args_list]
        assert tried == DNS_HOSTS[:failures + 1]

    @patch('socket.create_connection')
    def test_all_hosts_fail(self, mock_connection):
        mock_connection.side_effect = OSError("Connection failed")

        result = check_internet_connectivity()

        assert result is False
        assert mock_connection.call_count == 4

    def test_hosts_are_public_dns_on_port_53(self):
        assert [host for host, _ in DNS_HOSTS] == ["1.1.1.1", "8.8.8.8", "208.67.222.222", "9.9.9.9"]
        assert all(port == 53 for _, port in DNS_HOSTS)


class TestConnectivityFailure:
    """Test connectivity failure scenarios."""

    @pytest.mark.parametrize("error", [
        OSError("[Errno 101] Network is unreachable"),
        OSError("[Errno 111] Connection refused"),
        socket.timeout("Connection timed out"),
        socket.gaierror("Name or service not known"),
        PermissionError("Permission denied"),
    ])
    @patch('socket.create_connection')
    def test_errors_mean_offline(self, mock_connection, error):
        mock_connection.side_effect = error

        assert check_internet_connectivity() is False


class TestConnectivitySignalSource:
    """Test change detection and the polling thread."""

    def test_emits_only_on_change(self):
        checker = Mock(side_effect=[False, False, True, True, False])
        source = ConnectivitySignalSource(checker=checker)
        received = []
        source.callback = lambda event: received.append(event.kind) or False

        for _ in range(5):
            source.poll_once()

        assert received == [Signal.NETWORK_OFFLINE, Signal.NETWORK_ONLINE, Signal.NETWORK_OFFLINE]
        assert source.last_state is False

    def test_background_thread_polls_and_stops(self):
        checker = Mock(return_value=False)
        source = ConnectivitySignalSource(check_interval_seconds=0.01, checker=checker)
        received = []

        source.start(lambda event: received.append(event.kind) or False)
        for _ in range(200):
            if received:
                break
            source._stop_event.wait(0.01)
        source.stop()

        assert received[:1] == [Signal.NETWORK_OFFLINE]
        assert not source.listening
        calls = checker.call_count
        source._stop_event.wait(0.05)
        assert checker.call_count == calls

    def test_does_not_request_fullscreen(self):
        assert ConnectivitySignalSource(checker=Mock()).request_fullscreen() is False

"""Tests for the background receiver loop."""

import os
import socket
import sys
import unittest
from unittest.mock import Mock

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from doubles import EchoServer, make_console, wait_for
from client.receiver import ReceiverLoop, ReceiverState
from client.session import Session
from transport.line_connection import LineConnection, ReceiveError, ReceiveErrorReason
from ui.render_surface import RenderSurface


class _ScriptedConnection:
    """Connection double that returns, or raises, scripted results."""

    def __init__(self, *results):
        self._results = list(results)
        self.calls = 0

    def receive(self):
        self.calls += 1
        result = self._results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def _connected_session():
    session = Session("alice")
    session.mark_connected()
    return session


class TestReceiverLoop(unittest.TestCase):
    """Test ReceiverLoop against scripted connections."""

    def test_lines_are_appended_in_order(self):
        """Test each received line is appended in receipt order."""
        surface = RenderSurface(make_console())
        session = _connected_session()
        receiver = ReceiverLoop(_ScriptedConnection("one", "two", "", None), session, surface)

        receiver.start()
        receiver.join(timeout=2.0)

        self.assertEqual(surface.history, ["one", "two", ""])
        self.assertEqual(receiver.state, ReceiverState.STOPPED)

    def test_eof_sets_status_and_clears_connected(self):
        """Test EOF reports 'Server disconnected' as an error."""
        surface = RenderSurface(make_console())
        session = _connected_session()
        receiver = ReceiverLoop(_ScriptedConnection(None), session, surface)

        receiver.start()
        receiver.join(timeout=2.0)

        self.assertFalse(session.connected)
        self.assertEqual(surface.status, "Server disconnected")
        self.assertTrue(surface.status_is_error)

    def test_error_sets_status_and_clears_connected(self):
        """Test a receive error reports 'Connection error'."""
        surface = RenderSurface(make_console())
        session = _connected_session()
        error = ReceiveError(ReceiveErrorReason.SOCKET_ERROR, "reset by peer")
        receiver = ReceiverLoop(_ScriptedConnection("hi", error), session, surface)

        receiver.start()
        receiver.join(timeout=2.0)

        self.assertEqual(surface.history, ["hi"])
        self.assertFalse(session.connected)
        self.assertEqual(surface.status, "Connection error")
        self.assertTrue(surface.status_is_error)

    def test_status_emitted_once(self):
        """Test the disconnect status is not repeated."""
        surface = Mock(spec=RenderSurface)
        session = _connected_session()
        connection = _ScriptedConnection(None)
        receiver = ReceiverLoop(connection, session, surface)

        receiver.start()
        receiver.join(timeout=2.0)

        surface.set_status.assert_called_once_with("Server disconnected", is_error=True)
        self.assertEqual(connection.calls, 1)

    def test_no_status_when_already_disconnected(self):
        """Test no status when another thread already reported the loss."""
        surface = Mock(spec=RenderSurface)
        session = _connected_session()
        session.mark_disconnected()
        receiver = ReceiverLoop(_ScriptedConnection(None), session, surface)

        receiver.start()
        receiver.join(timeout=2.0)

        surface.set_status.assert_not_called()

    def test_no_status_during_shutdown(self):
        """Test EOF caused by shutdown leaves the status bar alone."""
        surface = Mock(spec=RenderSurface)
        session = _connected_session()
        connection = _ScriptedConnection("last words", None)

        def append(line):
            session.request_exit()

        surface.append_chat.side_effect = append
        receiver = ReceiverLoop(connection, session, surface)

        receiver.start()
        receiver.join(timeout=2.0)

        surface.append_chat.assert_called_once_with("last words")
        surface.set_status.assert_not_called()
        self.assertEqual(connection.calls, 1)

    def test_start_twice_starts_one_thread(self):
        """Test start is idempotent."""
        surface = RenderSurface(make_console())
        receiver = ReceiverLoop(_ScriptedConnection(None), _connected_session(), surface)
        receiver.start()
        receiver.start()
        receiver.join(timeout=2.0)
        self.assertFalse(receiver.is_alive())


def test_echo_round_trip():
    """A sent line comes back from an echo server with only its newline stripped."""
    server = EchoServer().start()
    connection = LineConnection.connect("127.0.0.1", server.port)
    session = _connected_session()
    surface = RenderSurface(make_console())
    receiver = ReceiverLoop(connection, session, surface)
    try:
        connection.send("alice")
        receiver.start()
        connection.send("hello world")

        assert wait_for(lambda: surface.history == ["ECHO: hello world"])
        assert server.received == [b"hello world\n"]
    finally:
        connection.close()
        server.stop()


def test_server_disconnect_is_reported_once():
    """Closing the server side marks the session disconnected once."""
    server = EchoServer().start()
    connection = LineConnection.connect("127.0.0.1", server.port)
    session = _connected_session()
    surface = Mock(spec=RenderSurface)
    receiver = ReceiverLoop(connection, session, surface)
    try:
        connection.send("alice")
        receiver.start()
        assert wait_for(lambda: server._conn is not None)
        server.disconnect_client()

        receiver.join(timeout=5.0)
        assert not receiver.is_alive()
        assert not session.connected
        assert surface.set_status.call_count == 1
        assert surface.set_status.call_args[1]["is_error"] is True
    finally:
        connection.close()
        server.stop()


def test_local_close_stops_receiver_quietly():
    """Closing the connection during shutdown unblocks the receiver without status."""
    ours, theirs = socket.socketpair()
    connection = LineConnection(ours, "peer", 0)
    session = _connected_session()
    surface = Mock(spec=RenderSurface)
    receiver = ReceiverLoop(connection, session, surface)
    receiver.start()

    session.request_exit()
    connection.close()
    receiver.join(timeout=5.0)

    assert not receiver.is_alive()
    surface.set_status.assert_not_called()
    theirs.close()

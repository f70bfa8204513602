"""Test doubles shared by the chat client tests."""

from __future__ import annotations

import io
import socket
import threading
import time

from rich.console import Console


def make_console(width: int = 80, height: int = 24) -> Console:
    """Console that renders into a string buffer at a fixed size."""
    return Console(
        file=io.StringIO(),
        width=width,
        height=height,
        force_terminal=True,
        color_system=None,
        legacy_windows=False,
    )


def wait_for(predicate, timeout: float = 5.0, interval: float = 0.01) -> bool:
    """Poll predicate until it is true or the timeout expires."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class GatedStream:
    """
    Character stream for TerminalInput.

    Serves ``first``, then waits for ``gate`` before serving ``rest``,
    then reports end of input.
    """

    def __init__(self, first: str, gate: threading.Event | None = None, rest: str = "") -> None:
        self._first = list(first)
        self._rest = list(rest)
        self._gate = gate

    def isatty(self) -> bool:
        return False

    def read(self, size: int = 1) -> str:
        if self._first:
            return self._first.pop(0)
        if self._gate is not None:
            self._gate.wait(timeout=5.0)
            self._gate = None
        if self._rest:
            return self._rest.pop(0)
        return ""


class EchoServer:
    """
    Single-client TCP server that records the handshake and echoes lines.

    Every line after the first is answered with ``prefix + line``.
    """

    def __init__(self, prefix: str = "ECHO: ") -> None:
        self.prefix = prefix
        self.received: list[bytes] = []
        self.handshake: bytes | None = None
        self.got_message = threading.Event()
        self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._listener.bind(("127.0.0.1", 0))
        self._listener.listen(1)
        self._conn: socket.socket | None = None
        self._thread = threading.Thread(target=self._serve, daemon=True)

    @property
    def port(self) -> int:
        return self._listener.getsockname()[1]

    def start(self) -> "EchoServer":
        self._thread.start()
        return self

    def _serve(self) -> None:
        try:
            self._conn, _ = self._listener.accept()
        except OSError:
            return
        reader = self._conn.makefile("rb")
        try:
            for raw in reader:
                if self.handshake is None:
                    self.handshake = raw
                    continue
                self.received.append(raw)
                self.got_message.set()
                line = raw[:-1] if raw.endswith(b"\n") else raw
                self._conn.sendall(self.prefix.encode("utf-8") + line + b"\n")
        except OSError:
            pass
        finally:
            reader.close()

    def disconnect_client(self) -> None:
        if self._conn is not None:
            try:
                self._conn.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            self._conn.close()

    def stop(self) -> None:
        self.disconnect_client()
        self._listener.close()
        self._thread.join(timeout=2.0)

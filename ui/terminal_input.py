"""Blocking line reader for the chat input box."""

from __future__ import annotations

import sys
import threading
from typing import Callable, TextIO

from common.logging_setup import get_logger

logger = get_logger(__name__)

ENTER_KEYS = ("\r", "\n")
BACKSPACE_KEYS = ("\x7f", "\x08")
CTRL_D = "\x04"
CTRL_U = "\x15"
ESC = "\x1b"


class TerminalInput:
    """
    Reads lines from the terminal one key at a time.

    On a real terminal the stream is switched to cbreak mode, so keys
    arrive unechoed and the input box does the echoing through the
    ``on_change`` callback. Ctrl+C still raises SIGINT in that mode.
    Any other stream (a pipe, a StringIO in tests) is read as-is.
    """

    def __init__(self, stream: TextIO | None = None, max_length: int = 200) -> None:
        self._stream = stream if stream is not None else sys.stdin
        self.max_length = max_length
        self._saved_attrs: list | None = None
        self._lock = threading.Lock()

    def _is_tty(self) -> bool:
        isatty = getattr(self._stream, "isatty", None)
        return bool(isatty and isatty())

    def start(self) -> None:
        """Switch the terminal to cbreak mode (no-op for non-terminals)."""
        if not self._is_tty():
            return

        import termios
        import tty

        with self._lock:
            if self._saved_attrs is not None:
                return
            fd = self._stream.fileno()
            self._saved_attrs = termios.tcgetattr(fd)
            tty.setcbreak(fd)
        logger.debug("Terminal switched to cbreak mode")

    def restore(self) -> None:
        """Restore the terminal mode saved by start(). Safe to call more than once."""
        with self._lock:
            saved, self._saved_attrs = self._saved_attrs, None
        if saved is None:
            return

        import termios

        try:
            termios.tcsetattr(self._stream.fileno(), termios.TCSADRAIN, saved)
        except (OSError, termios.error) as e:
            logger.debug(f"Error restoring terminal mode: {e}")

    def read_line(self, on_change: Callable[[str], None] | None = None) -> str | None:
        """
        Block until a full line has been typed.

        Args:
            on_change: Called with the current buffer after every edit

        Returns:
            The typed line without its terminator, or None at end of input
        """
        buffer: list[str] = []

        while True:
            ch = self._stream.read(1)
            if not ch:
                return "".join(buffer) if buffer else None

            if ch in ENTER_KEYS:
                return "".join(buffer)

            if ch in BACKSPACE_KEYS:
                if not buffer:
                    continue
                buffer.pop()
            elif ch == CTRL_U:
                buffer.clear()
            elif ch == CTRL_D:
                if not buffer:
                    return None
                continue
            elif ch == ESC:
                self._skip_escape_sequence()
                continue
            elif ch.isprintable() and len(buffer) < self.max_length:
                buffer.append(ch)
            else:
                continue

            if on_change:
                on_change("".join(buffer))

    def _skip_escape_sequence(self) -> None:
        """Consume an ANSI escape sequence such as an arrow key."""
        nxt = self._stream.read(1)
        if nxt != "[":
            return
        while True:
            ch = self._stream.read(1)
            if not ch or "@" <= ch <= "~":
                return

"""Shared terminal render surface for the chat screen."""

from __future__ import annotations

import math
import threading
from collections import deque

from rich.cells import cell_len
from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from common.logging_setup import get_logger

logger = get_logger(__name__)

TITLE_ROWS = 1
STATUS_ROWS = 1
INPUT_ROWS = 3
INPUT_TITLE = " Input "
CURSOR = "█"


class TerminalTooSmallError(Exception):
    """Raised when the terminal is below the minimum size."""

    def __init__(self, rows: int, cols: int, min_rows: int, min_cols: int) -> None:
        self.rows = rows
        self.cols = cols
        self.min_rows = min_rows
        self.min_cols = min_cols
        super().__init__(
            f"Terminal too small. Need at least {min_rows} lines and {min_cols} columns."
        )


class RenderSurface:
    """
    Title bar, status bar, scrolling chat history and input box.

    Every public method takes the same lock for its whole duration, so the
    receiver thread and the input thread can both draw without interleaving.
    Nothing here blocks on network or terminal input. Once closed, all
    drawing calls become no-ops.
    """

    def __init__(
        self,
        console: Console | None = None,
        title: str = "",
        show_status: bool = True,
        min_rows: int = 10,
        min_cols: int = 40,
        max_history: int | None = None,
    ) -> None:
        self.console = console or Console()
        self.show_status = show_status
        self.min_rows = min_rows
        self.min_cols = min_cols
        self._lock = threading.Lock()
        self._title = title
        self._status = ""
        self._status_is_error = False
        self._history: deque[str] = deque(maxlen=max_history)
        self._input_title = INPUT_TITLE
        self._prompt = ""
        self._input_buffer = ""
        self._live: Live | None = None
        self._closed = False

    # Lifecycle

    def check_size(self) -> None:
        """Raise TerminalTooSmallError if the console is below the minimum size."""
        cols, rows = self.console.size
        if rows < self.min_rows or cols < self.min_cols:
            raise TerminalTooSmallError(rows, cols, self.min_rows, self.min_cols)

    def start(self) -> None:
        """Enter the alternate screen and draw every region."""
        self.check_size()
        with self._lock:
            if self._live is not None or self._closed:
                return
            self._live = Live(
                self._render(),
                console=self.console,
                screen=True,
                auto_refresh=False,
                redirect_stdout=False,
                redirect_stderr=False,
            )
            self._live.start(refresh=True)
        logger.debug("Render surface started")

    def close(self) -> None:
        """Leave the alternate screen. Safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            live, self._live = self._live, None
            if live is not None:
                live.stop()
        logger.debug("Render surface closed")

    @property
    def started(self) -> bool:
        return self._live is not None

    @property
    def closed(self) -> bool:
        return self._closed

    # Drawing operations

    def append_chat(self, text: str) -> None:
        """Append one or more lines to the chat history."""
        with self._lock:
            if self._closed:
                return
            self._history.extend(text.split("\n"))
            self._refresh()

    def clear_chat(self) -> None:
        """Erase the chat history."""
        with self._lock:
            if self._closed:
                return
            self._history.clear()
            self._refresh()

    def set_status(self, text: str, is_error: bool = False) -> None:
        """Overwrite the status bar; errors are drawn bold red."""
        with self._lock:
            if self._closed:
                return
            self._status = text
            self._status_is_error = is_error
            self._refresh()

    def set_title(self, text: str) -> None:
        """Overwrite the title bar."""
        with self._lock:
            if self._closed:
                return
            self._title = text
            self._refresh()

    def redraw_input(
        self,
        prompt_prefix: str,
        buffer: str = "",
        title: str = INPUT_TITLE,
    ) -> None:
        """Erase and redraw the input box with a prompt and the typed text."""
        with self._lock:
            if self._closed:
                return
            self._input_title = title
            self._prompt = prompt_prefix
            self._input_buffer = buffer
            self._refresh()

    # Snapshots

    @property
    def title(self) -> str:
        with self._lock:
            return self._title

    @property
    def status(self) -> str:
        with self._lock:
            return self._status

    @property
    def status_is_error(self) -> bool:
        with self._lock:
            return self._status_is_error

    @property
    def history(self) -> list[str]:
        with self._lock:
            return list(self._history)

    @property
    def prompt(self) -> str:
        with self._lock:
            return self._prompt

    @property
    def input_title(self) -> str:
        with self._lock:
            return self._input_title

    # Rendering (caller holds the lock)

    def _refresh(self) -> None:
        if self._live is not None:
            self._live.update(self._render(), refresh=True)

    def _chat_rows(self) -> int:
        rows = self.console.size.height - TITLE_ROWS - INPUT_ROWS
        if self.show_status:
            rows -= STATUS_ROWS
        return max(1, rows)

    def _visible_history(self, rows: int, width: int) -> list[str]:
        """Return the newest lines that fit in rows, accounting for wrapping."""
        visible: list[str] = []
        used = 0
        for line in reversed(self._history):
            needed = max(1, math.ceil(cell_len(line) / max(1, width)))
            if used + needed > rows:
                break
            visible.append(line)
            used += needed
        visible.reverse()
        return visible

    def _render(self) -> Layout:
        width = self.console.size.width

        title = Text(self._title[:width].ljust(width), style="bold white on blue", no_wrap=True)

        chat_lines = self._visible_history(self._chat_rows(), width)
        chat = Text("\n".join(chat_lines), overflow="fold")

        input_text = Text(self._prompt, style="bold cyan")
        input_text.append(self._input_buffer)
        input_text.append(CURSOR, style="dim")
        input_panel = Panel(
            input_text,
            title=self._input_title,
            title_align="left",
            border_style="cyan",
            height=INPUT_ROWS,
        )

        sections = [Layout(title, name="title", size=TITLE_ROWS)]
        if self.show_status:
            style = "bold red" if self._status_is_error else "dim"
            status = Text(self._status, style=style, no_wrap=True)
            sections.append(Layout(status, name="status", size=STATUS_ROWS))
        sections.append(Layout(chat, name="chat"))
        sections.append(Layout(input_panel, name="input", size=INPUT_ROWS))

        layout = Layout()
        layout.split_column(*sections)
        return layout

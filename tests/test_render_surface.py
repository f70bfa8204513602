"""Unit tests for the shared render surface."""

from __future__ import annotations

import os
import sys
import threading

import pytest

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from doubles import make_console
from ui.render_surface import RenderSurface, TerminalTooSmallError


@pytest.fixture
def surface():
    surface = RenderSurface(make_console(), title="Terminal Chat - alice")
    yield surface
    surface.close()


def test_too_small_terminal_never_starts() -> None:
    surface = RenderSurface(make_console(width=30, height=5), min_rows=10, min_cols=40)

    with pytest.raises(TerminalTooSmallError) as excinfo:
        surface.start()

    assert "Need at least 10 lines and 40 columns" in str(excinfo.value)
    assert excinfo.value.rows == 5
    assert excinfo.value.cols == 30
    assert surface.started is False
    assert surface.console.file.getvalue() == ""


def test_minimum_size_is_accepted() -> None:
    surface = RenderSurface(make_console(width=40, height=10))
    surface.start()
    assert surface.started
    surface.close()


def test_append_chat_splits_lines(surface: RenderSurface) -> None:
    surface.start()
    surface.append_chat("first")
    surface.append_chat("second\nthird")

    assert surface.history == ["first", "second", "third"]
    assert "third" in surface.console.file.getvalue()


def test_append_chat_keeps_markup_literal(surface: RenderSurface) -> None:
    surface.append_chat("[bold]not markup[/bold]")
    assert surface.history == ["[bold]not markup[/bold]"]


def test_clear_chat(surface: RenderSurface) -> None:
    surface.append_chat("one\ntwo")
    surface.clear_chat()
    assert surface.history == []


def test_set_status_tracks_error_flag(surface: RenderSurface) -> None:
    surface.set_status("Connected to 127.0.0.1:8888")
    assert surface.status == "Connected to 127.0.0.1:8888"
    assert surface.status_is_error is False

    surface.set_status("Server disconnected", is_error=True)
    assert surface.status == "Server disconnected"
    assert surface.status_is_error is True


def test_set_title(surface: RenderSurface) -> None:
    surface.start()
    surface.set_title("Terminal Chat - bob")
    assert surface.title == "Terminal Chat - bob"
    assert "Terminal Chat - bob" in surface.console.file.getvalue()


def test_redraw_input(surface: RenderSurface) -> None:
    surface.start()
    surface.redraw_input("alice> ", "typing")
    assert surface.prompt == "alice> "
    assert surface.input_title == " Input "
    assert "alice> typing" in surface.console.file.getvalue()

    surface.redraw_input("Enter new name: ", title=" New Username ")
    assert surface.input_title == " New Username "


def test_close_is_idempotent_and_stops_drawing(surface: RenderSurface) -> None:
    surface.start()
    surface.close()
    surface.close()

    assert surface.closed
    surface.append_chat("after close")
    surface.set_status("after close", is_error=True)
    assert "after close" not in surface.history
    assert surface.status != "after close"


def test_history_bound() -> None:
    surface = RenderSurface(make_console(), max_history=3)
    for i in range(5):
        surface.append_chat(f"line {i}")
    assert surface.history == ["line 2", "line 3", "line 4"]


def test_history_unbounded_by_default(surface: RenderSurface) -> None:
    for i in range(500):
        surface.append_chat(f"line {i}")
    assert len(surface.history) == 500


def test_visible_history_shows_newest_lines() -> None:
    surface = RenderSurface(make_console(width=40, height=10))
    for i in range(20):
        surface.append_chat(f"line {i}")

    # 10 rows minus title, status and the 3-row input box
    visible = surface._visible_history(surface._chat_rows(), 40)
    assert visible == [f"line {i}" for i in range(15, 20)]


def test_visible_history_accounts_for_wrapping() -> None:
    surface = RenderSurface(make_console(width=40, height=10))
    surface.append_chat("short")
    surface.append_chat("x" * 100)

    visible = surface._visible_history(5, 40)
    assert visible == ["short", "x" * 100]

    visible = surface._visible_history(3, 40)
    assert visible == ["x" * 100]


def test_no_status_row_in_offline_layout() -> None:
    surface = RenderSurface(make_console(width=40, height=10), show_status=False)
    assert surface._chat_rows() == 6


def test_concurrent_appends_keep_per_thread_order(surface: RenderSurface) -> None:
    surface.start()

    def writer(tag: str) -> None:
        for i in range(100):
            surface.append_chat(f"{tag}{i}")

    threads = [threading.Thread(target=writer, args=(tag,)) for tag in ("a", "b")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10.0)

    history = surface.history
    assert len(history) == 200
    for tag in ("a", "b"):
        ours = [line for line in history if line.startswith(tag)]
        assert ours == [f"{tag}{i}" for i in range(100)]

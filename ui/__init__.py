"""Terminal user interface for Terminal Chat."""

from ui.render_surface import RenderSurface, TerminalTooSmallError
from ui.terminal_input import TerminalInput

__all__ = ["RenderSurface", "TerminalTooSmallError", "TerminalInput"]

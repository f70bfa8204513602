"""Slash command handling for the chat client."""

import enum
import time
from typing import Callable, Dict, Optional

from client.banner import title_for
from client.session import Session, validate_username
from common.config import Config
from common.logging_setup import get_logger
from transport.line_connection import LineConnection
from ui.render_surface import RenderSurface
from ui.terminal_input import TerminalInput

logger = get_logger(__name__)

NAME_PROMPT = "Enter new name: "
NAME_INPUT_TITLE = " New Username "

HELP_LINES = [
    "--- Available Commands ---",
    "/help    - Show this help",
    "/quit    - Exit the chat",
    "/clear   - Clear chat history",
    "/name    - Change username",
    "/time    - Show current time",
    "/status  - Show connection status",
    "-------------------------",
    "",
]


class CommandResult(enum.Enum):
    """What the input loop should do after a command."""

    CONTINUE = "continue"
    QUIT = "quit"


class CommandProcessor:
    """
    Dispatches ``/``-prefixed input against a fixed command table.

    Commands only touch local state (the session username) and the screen.
    ``/quit`` is reported back to the caller, which owns shutdown.
    """

    def __init__(
        self,
        session: Session,
        surface: RenderSurface,
        terminal: TerminalInput,
        config: Config,
        connection: Optional[LineConnection] = None,
    ):
        self.session = session
        self.surface = surface
        self.terminal = terminal
        self.config = config
        self.connection = connection
        self._commands: Dict[str, Callable[[], CommandResult]] = {
            "/help": self._show_help,
            "/quit": self._quit,
            "/clear": self._clear,
            "/name": self._change_username,
            "/time": self._show_time,
            "/status": self._show_status,
        }

    @property
    def names(self):
        return list(self._commands)

    def process(self, msg: str) -> CommandResult:
        """
        Run the command matching msg exactly.

        Args:
            msg: Input line starting with "/"

        Returns:
            CommandResult.QUIT for /quit, CONTINUE otherwise
        """
        handler = self._commands.get(msg)
        if handler is None:
            self.surface.append_chat(f"Unknown command: {msg} (type /help for commands)")
            return CommandResult.CONTINUE

        logger.debug(f"Running command {msg}")
        return handler()

    def _show_help(self) -> CommandResult:
        self.surface.append_chat("\n".join(HELP_LINES))
        return CommandResult.CONTINUE

    def _quit(self) -> CommandResult:
        return CommandResult.QUIT

    def _clear(self) -> CommandResult:
        self.surface.clear_chat()
        self.surface.append_chat("Chat cleared\n")
        return CommandResult.CONTINUE

    def _change_username(self) -> CommandResult:
        def redraw(buffer: str = "") -> None:
            self.surface.redraw_input(NAME_PROMPT, buffer, title=NAME_INPUT_TITLE)

        redraw()
        new_name = (self.terminal.read_line(on_change=redraw) or "").strip()

        if not new_name:
            self.surface.append_chat("Username unchanged")
            return CommandResult.CONTINUE

        try:
            validate_username(
                new_name,
                self.config.username_min_length,
                self.config.username_max_length,
            )
        except ValueError as e:
            self.surface.append_chat(f"{e}; username unchanged")
            return CommandResult.CONTINUE

        # The server keeps the name from the handshake; it is not told
        old_name, self.session.username = self.session.username, new_name
        self.surface.set_title(title_for(new_name))
        self.surface.append_chat(f"Username changed to: {new_name}")
        logger.info(f"Username changed from {old_name} to {new_name}")
        return CommandResult.CONTINUE

    def _show_time(self) -> CommandResult:
        self.surface.append_chat(f"Current time: {time.ctime()}")
        return CommandResult.CONTINUE

    def _show_status(self) -> CommandResult:
        if self.connection is None:
            status = "Offline mode"
        elif self.session.connected:
            status = (
                f"Connected to {self.connection.peer_address}:{self.connection.peer_port}"
                f" as {self.session.username}"
            )
        else:
            status = "Disconnected"
        self.surface.append_chat(status)
        return CommandResult.CONTINUE

"""Terminal chat client entry point."""

import argparse
import os
import sys
import time
from typing import Callable, Optional, Tuple

from rich.console import Console

from client.banner import title_for, welcome_lines
from client.commands import CommandProcessor, CommandResult
from client.lifecycle import LifecycleController
from client.receiver import ReceiverLoop
from client.session import Session, validate_username
from common.config import Config
from common.logging_setup import setup_logging, get_logger
from transport.line_connection import ConnectError, LineConnection, SendError
from ui.render_surface import RenderSurface, TerminalTooSmallError
from ui.terminal_input import TerminalInput

logger = get_logger(__name__)

STATUS_CONNECTION_LOST = "Connection lost"


def connect_session(config: Config, username: str) -> Tuple[Session, LineConnection]:
    """
    Connect to the server and send the username handshake line.

    Returns:
        Connected session and its connection

    Raises:
        ConnectError: If the connection cannot be opened
        SendError: If the handshake cannot be sent
    """
    connection = LineConnection.connect(
        config.host,
        config.port,
        recv_buffer_size=config.recv_buffer_size,
    )
    try:
        connection.send(username)
    except SendError:
        connection.close()
        raise

    session = Session(username)
    session.mark_connected()
    return session, connection


class ChatClient:
    """
    Chat client wiring the connection, screen and both loops together.

    The input loop runs on the calling thread; the receiver loop runs in
    the background. Without a connection the client runs in offline mode
    and echoes messages locally.
    """

    def __init__(
        self,
        config: Config,
        session: Session,
        surface: RenderSurface,
        terminal: TerminalInput,
        connection: Optional[LineConnection] = None,
        exit_func: Callable[[int], None] = os._exit,
    ):
        self.config = config
        self.session = session
        self.surface = surface
        self.terminal = terminal
        self.connection = connection
        self.commands = CommandProcessor(
            session=session,
            surface=surface,
            terminal=terminal,
            config=config,
            connection=connection,
        )
        self.receiver: Optional[ReceiverLoop] = None
        if connection is not None:
            self.receiver = ReceiverLoop(connection, session, surface)
        self.lifecycle = LifecycleController(
            session=session,
            surface=surface,
            terminal=terminal,
            connection=connection,
            disconnect_notice=config.disconnect_notice,
            exit_func=exit_func,
        )

    @property
    def offline(self) -> bool:
        return self.connection is None

    def start(self) -> None:
        """Draw the screen and start the background threads."""
        self.terminal.start()
        self.surface.set_title(title_for(self.session.username))
        self.surface.start()

        if not self.offline:
            self.surface.set_status(
                f"Connected to {self.connection.peer_address}:{self.connection.peer_port}"
            )
        self.surface.append_chat("\n".join(welcome_lines(self.session.username)))

        if self.receiver:
            self.receiver.start()
        self.lifecycle.start_supervisor()

    def _prompt(self) -> str:
        return f"{self.session.username}> "

    def _redraw_prompt(self, buffer: str = "") -> None:
        self.surface.redraw_input(self._prompt(), buffer)

    def _keep_running(self) -> bool:
        if self.session.should_exit:
            return False
        return self.offline or self.session.connected

    def run_input_loop(self) -> None:
        """Read and dispatch terminal lines until quit, disconnect or EOF."""
        while self._keep_running():
            self._redraw_prompt()
            msg = self.terminal.read_line(on_change=self._redraw_prompt)

            if msg is None:
                logger.info("End of terminal input")
                break
            if self.session.should_exit:
                break
            if not msg:
                continue

            if msg.startswith("/"):
                if self.commands.process(msg) is CommandResult.QUIT:
                    break
                continue

            if self.offline:
                timestamp = time.strftime("%H:%M:%S")
                self.surface.append_chat(f"[{timestamp}] {self.session.username}: {msg}")
                continue

            # Never write once the receiver has seen the connection end
            if not self.session.connected:
                break

            try:
                self.connection.send(msg)
            except SendError as e:
                if e.peer_gone:
                    if self.session.mark_disconnected():
                        self.surface.set_status(STATUS_CONNECTION_LOST, is_error=True)
                    break
                self.surface.set_status(f"Send failed: {e}", is_error=True)

    def run(self) -> int:
        """Run the client until the input loop ends, then shut down."""
        self.start()
        try:
            self.run_input_loop()
        finally:
            self.lifecycle.shutdown("input loop ended")
        return 0


def prompt_username(config: Config, input_func: Callable[[str], str] = input) -> str:
    """
    Ask for a username on standard input.

    Raises:
        ValueError: If the name breaks the length rules
    """
    name = input_func("Enter your username: ").strip()
    return validate_username(name, config.username_min_length, config.username_max_length)


def main(argv=None) -> None:
    """Main entry point for chat-client."""
    parser = argparse.ArgumentParser(
        description="Terminal Chat - Client",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--host",
        default=Config.host,
        help="Chat server host",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=Config.port,
        help="Chat server port",
    )

    parser.add_argument(
        "--offline",
        action="store_true",
        help="Run without a server, echoing messages locally",
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )

    parser.add_argument(
        "--log-file",
        help="Log file path (optional, the screen is never used for logs)",
    )

    args = parser.parse_args(argv)

    setup_logging(level=args.log_level, log_file=args.log_file, console=False)

    config = Config(
        host=args.host,
        port=args.port,
        offline=args.offline,
        log_level=args.log_level,
        log_file=args.log_file,
    )

    try:
        username = prompt_username(config)
    except (EOFError, KeyboardInterrupt):
        print("\nCancelled.")
        sys.exit(1)
    except ValueError as e:
        print(f"{e}.")
        sys.exit(1)

    surface = RenderSurface(
        Console(),
        title=title_for(username),
        show_status=not config.offline,
        min_rows=config.min_rows,
        min_cols=config.min_cols,
        max_history=config.max_history,
    )
    try:
        surface.check_size()
    except TerminalTooSmallError as e:
        print(e)
        sys.exit(1)

    connection: Optional[LineConnection] = None
    if config.offline:
        session = Session(username)
    else:
        try:
            session, connection = connect_session(config, username)
        except (ConnectError, SendError) as e:
            print(f"Failed to connect to {config.host}:{config.port}: {e}")
            sys.exit(1)

    terminal = TerminalInput(max_length=config.max_input_length)
    client = ChatClient(config, session, surface, terminal, connection=connection)
    client.lifecycle.install_signal_handlers()

    try:
        code = client.run()
    except Exception as e:
        logger.error(f"Chat client error: {e}")
        client.lifecycle.shutdown("error")
        sys.exit(1)

    sys.exit(code)


if __name__ == "__main__":
    main()

"""REPL loop and one-shot mode for the chatcli CLI."""

from __future__ import annotations

import asyncio
import logging
import platform
import signal
import sys
from typing import Any, Protocol, TextIO

from ..config import ChatConfig
from ..models import History, Message, Role
from ..services.ai_service import ChatService
from ..services.gateway import Gateway, Outcome, OutcomeKind
from . import renderer
from .assembler import LineAssembler

logger = logging.getLogger(__name__)

_IS_WINDOWS = platform.system() == "Windows"

PROMPT = "> "
CONTINUATION_PROMPT = "... "
_QUIT_COMMANDS = ("/quit", "/exit")
_HELP_COMMAND = "/help"

# Exit status for a one-shot request the user interrupted (128 + SIGINT).
EXIT_CANCELED = 130


class RawLineSource(Protocol):
    async def read_line(self, prompt: str) -> str:
        """Return the next raw line; raise EOFError at end of input."""
        ...


class PromptLineSource:
    """Raw lines typed at an interactive terminal."""

    def __init__(self) -> None:
        from prompt_toolkit import PromptSession
        from prompt_toolkit.history import InMemoryHistory

        self._session: PromptSession[str] = PromptSession(history=InMemoryHistory())

    async def read_line(self, prompt: str) -> str:
        # Ctrl+C raises KeyboardInterrupt and Ctrl+D raises EOFError here.
        return await self._session.prompt_async(prompt)


class StreamLineSource:
    """Raw lines read from a non-interactive stream such as piped stdin."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    async def read_line(self, prompt: str) -> str:
        line = self._stream.readline()
        if not line:
            raise EOFError
        return line.rstrip("\r\n")


def _make_line_source() -> RawLineSource:
    if sys.stdin.isatty():
        return PromptLineSource()
    return StreamLineSource(sys.stdin)


def _add_signal_handler(loop: asyncio.AbstractEventLoop, sig: int, callback: Any) -> bool:
    """Add a signal handler, returning False on Windows where it's unsupported."""
    if _IS_WINDOWS:
        return False
    try:
        loop.add_signal_handler(sig, callback)
        return True
    except NotImplementedError:
        return False


def _remove_signal_handler(loop: asyncio.AbstractEventLoop, sig: int) -> None:
    """Remove a signal handler, no-op on Windows."""
    if _IS_WINDOWS:
        return
    try:
        loop.remove_signal_handler(sig)
    except NotImplementedError:
        pass


class CancellationWatcher:
    """Turns SIGINT into a cancel request for the duration of one dispatch.

    Outside the ``with`` block the previous SIGINT handler is in place, so
    an interrupt while idle still ends the process.
    """

    def __init__(self, cancel_event: asyncio.Event) -> None:
        self.cancel_event = cancel_event
        self._loop: asyncio.AbstractEventLoop | None = None
        self._original_handler: Any = None
        self._loop_handler = False

    def _on_interrupt(self) -> None:
        logger.debug("Interrupt received, canceling dispatch")
        self.cancel_event.set()

    def __enter__(self) -> CancellationWatcher:
        self._loop = asyncio.get_running_loop()
        self._original_handler = signal.getsignal(signal.SIGINT)
        self._loop_handler = _add_signal_handler(self._loop, signal.SIGINT, self._on_interrupt)
        if not self._loop_handler:
            loop = self._loop
            signal.signal(signal.SIGINT, lambda signum, frame: loop.call_soon_threadsafe(self._on_interrupt))
        return self

    def __exit__(self, *exc: object) -> None:
        if self._loop is not None and self._loop_handler:
            _remove_signal_handler(self._loop, signal.SIGINT)
        if self._original_handler is not None:
            signal.signal(signal.SIGINT, self._original_handler)
        self._loop = None


class SessionLoop:
    """Reads logical messages, dispatches each turn, and applies the outcome.

    The loop owns the history. The user message is appended before the
    call is made and stays there whatever the outcome; only a successful
    outcome appends the reply.
    """

    def __init__(
        self,
        config: ChatConfig,
        gateway: Gateway,
        line_source: RawLineSource | None = None,
        history: History | None = None,
    ) -> None:
        self.config = config
        self.gateway = gateway
        self.line_source = line_source
        self.history = history if history is not None else History()
        self.assembler = LineAssembler()

    async def read_message(self) -> str:
        """Read raw lines until a non-blank logical message is complete.

        Raises EOFError at end of input and KeyboardInterrupt on an idle
        interrupt; an unterminated multi-line block is dropped in both cases.
        """
        if self.line_source is None:
            raise EOFError
        try:
            while True:
                prompt = CONTINUATION_PROMPT if self.assembler.collecting else PROMPT
                line = await self.line_source.read_line(prompt)
                message = self.assembler.feed(line)
                if message is not None:
                    return message
        except (EOFError, KeyboardInterrupt):
            self.assembler.reset()
            raise

    async def run_turn(self, text: str) -> Outcome:
        self.history.append(Message(role=Role.USER, content=text))
        cancel_event = asyncio.Event()
        with CancellationWatcher(cancel_event), renderer.ProgressIndicator():
            outcome = await self.gateway.dispatch(self.history.snapshot(), cancel_event)
        self._apply(outcome)
        return outcome

    def _apply(self, outcome: Outcome) -> None:
        if outcome.kind is OutcomeKind.SUCCESS:
            self.history.append(Message(role=Role.SYSTEM, content=outcome.text))
            renderer.render_response(outcome.text, style=self.config.style, plain=self.config.plain)
        elif outcome.kind is OutcomeKind.CANCELED:
            renderer.render_notice("Canceled.")
        else:
            logger.info("Turn failed: %s", outcome.message)
            renderer.render_error(outcome.message)

    async def run(self) -> None:
        """Run turns until end of input, an idle interrupt, or /quit."""
        while True:
            try:
                text = await self.read_message()
            except (EOFError, KeyboardInterrupt):
                return

            command = text.strip()
            if command in _QUIT_COMMANDS:
                return
            if command == _HELP_COMMAND:
                renderer.render_help()
                continue

            await self.run_turn(text)


def _exit_code(outcome: Outcome) -> int:
    if outcome.kind is OutcomeKind.SUCCESS:
        return 0
    if outcome.kind is OutcomeKind.CANCELED:
        return EXIT_CANCELED
    return 1


async def run_cli(
    config: ChatConfig,
    prompt: str | None = None,
    gateway: Gateway | None = None,
    line_source: RawLineSource | None = None,
) -> int:
    """Main entry point for CLI mode; returns the process exit status."""
    if gateway is None:
        service = ChatService(config)
        gateway = Gateway(service.complete, model=config.model, timeout=config.timeout)

    if not config.interactive:
        session = SessionLoop(config, gateway)
        return _exit_code(await session.run_turn(prompt or ""))

    renderer.render_welcome(config.model)
    session = SessionLoop(config, gateway, line_source or _make_line_source())
    if prompt:
        await session.run_turn(prompt)
    await session.run()
    return 0

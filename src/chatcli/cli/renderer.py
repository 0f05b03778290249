"""Rich-based terminal output for the CLI chat."""

from __future__ import annotations

import logging
import sys

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.padding import Padding
from rich.status import Status

from ..config import RenderStyle

logger = logging.getLogger(__name__)

console = Console(stderr=True)
# Separate console for stdout markdown rendering (not stderr)
_stdout_console = Console()

MUTED = "#8b8b8b"  # secondary text (notices, hints)
CHROME = "#6b7280"  # UI chrome (banner, prompts)

_CODE_THEMES: dict[RenderStyle, str] = {
    RenderStyle.DARK: "monokai",
    RenderStyle.LIGHT: "friendly",
}

# Rich's "line" spinner cycles - \ | / every 130ms; scale it to 100ms.
_SPINNER = "line"
_SPINNER_SPEED = 1.3


class ProgressIndicator:
    """Rotating glyph on stderr while a dispatch is outstanding.

    Purely cosmetic: it refreshes on Rich's own timer and never touches the
    dispatch itself. The line is cleared when stopped.
    """

    def __init__(self, label: str = "Waiting for response...", enabled: bool | None = None) -> None:
        self.label = label
        self.enabled = console.is_terminal if enabled is None else enabled
        self._status: Status | None = None

    @property
    def running(self) -> bool:
        return self._status is not None

    def start(self) -> None:
        if not self.enabled or self._status is not None:
            return
        self._status = Status(
            f"[{MUTED}]{escape(self.label)}[/{MUTED}]",
            console=console,
            spinner=_SPINNER,
            speed=_SPINNER_SPEED,
        )
        self._status.start()

    def stop(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None

    def __enter__(self) -> ProgressIndicator:
        self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self.stop()


def _render_plain(text: str) -> None:
    sys.stdout.write(text + "\n")
    sys.stdout.flush()


def render_response(text: str, style: RenderStyle = RenderStyle.DARK, plain: bool = False) -> None:
    """Render a reply as Markdown, falling back to plain text if that fails."""
    if not text.strip():
        return

    if plain or style is RenderStyle.NOTTY:
        _render_plain(text)
        return

    try:
        markdown = Markdown(text, code_theme=_CODE_THEMES.get(style, "monokai"))
        with _stdout_console.capture() as capture:
            _stdout_console.print(Padding(markdown, (0, 2, 0, 2)))
    except Exception:
        logger.debug("Styled rendering failed, falling back to plain text", exc_info=True)
        _render_plain(text)
        return

    sys.stdout.write(capture.get())
    sys.stdout.flush()


def render_error(message: str) -> None:
    console.print(f"[red bold]Error:[/red bold] {escape(message)}")


def render_notice(message: str) -> None:
    console.print(f"[{MUTED}]{escape(message)}[/{MUTED}]")


def render_welcome(model: str) -> None:
    console.print("Interactive mode. Ctrl+C to quit.")
    console.print(f"[{CHROME}]  Model: {escape(model)} | Type /help for input help[/{CHROME}]")


def render_help() -> None:
    console.print("\n[bold]Input:[/bold]")
    console.print("  `text       - Start a multi-line message")
    console.print("  text`       - Finish a multi-line message")
    console.print("\n[bold]Commands:[/bold]")
    console.print("  /help       - Show this help")
    console.print("  /quit       - Exit (also /exit)")
    console.print("  Ctrl+C      - Cancel the current response, or exit when idle")
    console.print("  Ctrl+D      - Exit\n")

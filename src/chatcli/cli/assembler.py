"""Assembly of raw terminal lines into logical messages."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

DELIMITER = "`"


class LineAssembler:
    """Two-state machine over raw input lines.

    In the normal state every line is a complete message. A line starting
    with a backtick opens a multi-line block; lines are collected until one
    ends with a backtick, then the block is emitted joined by newlines with
    both delimiters stripped.

    A single line that both starts and ends with a backtick only opens a
    block: the trailing backtick is kept as content and collection goes on.
    """

    def __init__(self) -> None:
        self._buffer: list[str] = []
        self._multiline = False

    @property
    def collecting(self) -> bool:
        return self._multiline

    @property
    def pending(self) -> list[str]:
        return list(self._buffer)

    def feed(self, line: str) -> str | None:
        """Consume one raw line; return a message when one is complete.

        Returns ``None`` while a block is still open and for blank messages,
        which are dropped.
        """
        if self._multiline:
            if line.endswith(DELIMITER):
                self._buffer.append(line[: -len(DELIMITER)])
                return self._emit()
            self._buffer.append(line)
            return None

        if line.startswith(DELIMITER):
            self._multiline = True
            self._buffer.append(line[len(DELIMITER) :])
            return None

        return self._finish(line)

    def reset(self) -> None:
        if self._buffer:
            logger.debug("Discarding %d unterminated line(s)", len(self._buffer))
        self._buffer = []
        self._multiline = False

    def _emit(self) -> str | None:
        text = "\n".join(self._buffer)
        self._buffer = []
        self._multiline = False
        return self._finish(text)

    @staticmethod
    def _finish(text: str) -> str | None:
        if not text.strip():
            return None
        return text

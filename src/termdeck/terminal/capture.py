"""Reconstruct typed commands from a session's outbound keystrokes.

Mirrors line-based terminal input editing: printable ASCII accumulates,
backspace/delete removes the last character, and CR or LF completes the
line. Escape sequences (arrow keys, function keys) and non-ASCII input are
skipped, so edits made by moving the cursor are not reflected.
"""

from __future__ import annotations

from collections.abc import Callable

from termdeck.logging import TRACE, get_logger

log = get_logger("capture")

ESC = "\x1b"
BACKSPACE_CHARS = frozenset({"\x7f", "\b"})
LINE_END_CHARS = frozenset({"\r", "\n"})

# Escape parser states
_NORMAL = 0
_ESCAPE = 1  # after ESC
_CSI = 2  # after ESC [
_SS3 = 3  # after ESC O


class CommandCaptureBuffer:
    """Per-session accumulator turning keystrokes into command strings.

    Args:
        on_command: Called with each completed, stripped, non-empty command.
    """

    def __init__(self, on_command: Callable[[str], None] | None = None) -> None:
        self._on_command = on_command
        self._chars: list[str] = []
        self._state = _NORMAL

    @property
    def buffer(self) -> str:
        """The current, not yet terminated input line."""
        return "".join(self._chars)

    def reset(self) -> None:
        self._chars.clear()
        self._state = _NORMAL

    def feed(self, data: bytes | str) -> list[str]:
        """Process outbound data; returns the commands it completed."""
        # latin-1 maps each byte to one character; bytes >= 0x80 are ignored below
        text = data.decode("latin-1") if isinstance(data, bytes) else data
        completed: list[str] = []
        for ch in text:
            command = self._feed_char(ch)
            if command is not None:
                completed.append(command)
        return completed

    def _feed_char(self, ch: str) -> str | None:
        if self._state == _ESCAPE:
            if ch == "[":
                self._state = _CSI
            elif ch == "O":
                self._state = _SS3
            elif ch != ESC:
                self._state = _NORMAL
            return None
        if self._state == _CSI:
            # Parameter and intermediate bytes continue; a final byte ends it
            if "\x40" <= ch <= "\x7e":
                self._state = _NORMAL
            return None
        if self._state == _SS3:
            self._state = _NORMAL
            return None

        if ch == ESC:
            self._state = _ESCAPE
        elif ch in LINE_END_CHARS:
            return self._complete_line()
        elif ch in BACKSPACE_CHARS:
            if self._chars:
                self._chars.pop()
        elif " " <= ch <= "~":
            self._chars.append(ch)
        return None

    def _complete_line(self) -> str | None:
        command = "".join(self._chars).strip()
        self._chars.clear()
        if not command:
            return None
        log.log(TRACE, "Captured command: %s", command)
        if self._on_command is not None:
            self._on_command(command)
        return command

"""Subprocess-based transport for local shell sessions."""

from __future__ import annotations

import asyncio
import os
from typing import TYPE_CHECKING

from termdeck.errors import TransportError
from termdeck.logging import TRACE, get_logger

if TYPE_CHECKING:
    from termdeck.terminal.protocol import TransportListener

log = get_logger("transport.subprocess")


class SubprocessTransport:
    """Run a shell as a child process and expose it as a byte channel.

    stdout and stderr are merged and delivered to the listener chunk by
    chunk. Output is raw bytes; no PTY is allocated.
    """

    def __init__(
        self,
        command: list[str],
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        read_size: int = 4096,
        close_timeout: float = 2.0,
    ) -> None:
        """Initialize the transport.

        Args:
            command: Program and arguments to run.
            cwd: Working directory for the process.
            env: Additional environment variables.
            read_size: Maximum bytes delivered per on_message call.
            close_timeout: Seconds to wait after terminate before killing.
        """
        if not command:
            raise ValueError("command must not be empty")
        self._command = list(command)
        self._cwd = cwd
        self._env = env
        self._read_size = read_size
        self._close_timeout = close_timeout
        self._process: asyncio.subprocess.Process | None = None
        self._reader: asyncio.Task[None] | None = None
        self._listener: TransportListener | None = None
        self._closed = False

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and self._process is not None
            and self._process.returncode is None
        )

    @property
    def returncode(self) -> int | None:
        return self._process.returncode if self._process is not None else None

    async def open(self, listener: TransportListener) -> None:
        if self._process is not None:
            raise TransportError("Transport already opened")

        process_env = os.environ.copy()
        if self._env:
            process_env.update(self._env)

        try:
            self._process = await asyncio.create_subprocess_exec(
                *self._command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,  # Merge stderr into stdout
                cwd=self._cwd,
                env=process_env,
            )
        except FileNotFoundError as e:
            raise TransportError(f"Command not found: {self._command[0]}") from e
        except PermissionError as e:
            raise TransportError(f"Permission denied: {self._command[0]}") from e
        except OSError as e:
            raise TransportError(f"OS error: {e}") from e

        self._listener = listener
        self._reader = asyncio.create_task(self._read_loop(), name="subprocess-reader")
        log.debug("Started %s (pid %s)", self._command[0], self._process.pid)

    async def _read_loop(self) -> None:
        assert self._process is not None and self._process.stdout is not None
        listener = self._listener
        assert listener is not None
        try:
            while True:
                chunk = await self._process.stdout.read(self._read_size)
                if not chunk:
                    break
                log.log(TRACE, "Received %d bytes", len(chunk))
                listener.on_message(chunk)
            code = await self._process.wait()
            log.debug("Process exited with code %s", code)
            self._closed = True
            listener.on_close()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._closed = True
            log.warning("Subprocess reader failed: %s", e)
            listener.on_error(e)

    async def send(self, data: bytes | str) -> None:
        if not self.is_open:
            raise TransportError("Transport is not open")
        assert self._process is not None and self._process.stdin is not None
        payload = data.encode("utf-8") if isinstance(data, str) else data
        try:
            self._process.stdin.write(payload)
            await self._process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise TransportError(f"Write failed: {e}") from e

    async def close(self) -> None:
        if self._closed and (self._process is None or self._process.returncode is not None):
            if self._reader is not None and not self._reader.done():
                self._reader.cancel()
            return
        self._closed = True
        process = self._process
        if process is None:
            return

        if process.stdin is not None and not process.stdin.is_closing():
            process.stdin.close()
        if process.returncode is None:
            try:
                process.terminate()
                try:
                    await asyncio.wait_for(process.wait(), timeout=self._close_timeout)
                except asyncio.TimeoutError:
                    process.kill()
                    await process.wait()
            except ProcessLookupError:
                pass  # Process already gone

        if self._reader is not None and not self._reader.done():
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
        log.debug("Closed %s", self._command[0])

"""
Stdio transport for the MCP server.

Reads newline-delimited JSON-RPC from stdin, hands each complete line to the
dispatcher as its own task (in arrival order), and writes one response line
per request to stdout. Responses may complete out of order; each carries its
request id. stdout is written only through ``OutputChannel`` so lines never
interleave.
"""

import asyncio
import logging
import sys
from typing import Any, BinaryIO, Protocol

from context_manager.server.dispatcher import ProtocolDispatcher
from context_manager.server.framing import ByteFrameReader
from context_manager.server.jsonrpc import serialize
from context_manager.server.lifecycle import EXIT_ERROR, EXIT_OK, LifecycleManager

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024


class ByteSource(Protocol):
    """Anything with an async ``read(n)`` returning b"" at end of stream."""

    async def read(self, n: int = -1) -> bytes: ...


class ExecutorByteSource:
    """Reads a blocking binary stream in the default executor.

    Used when stdin is a regular file or a console, which
    ``connect_read_pipe`` does not accept.
    """

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    async def read(self, n: int = -1) -> bytes:
        loop = asyncio.get_running_loop()
        read = getattr(self._stream, "read1", self._stream.read)
        return await loop.run_in_executor(None, read, n)


async def open_stdin_source(stream: BinaryIO | None = None) -> ByteSource:
    """
    Wrap stdin as an async byte source.

    Pipes and sockets get an ``asyncio.StreamReader``. Anything else falls
    back to executor reads.

    Args:
        stream: Binary input stream (default: sys.stdin.buffer)

    Returns:
        ByteSource
    """
    stream = stream if stream is not None else sys.stdin.buffer
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    try:
        await loop.connect_read_pipe(lambda: protocol, stream)
    except (ValueError, OSError, NotImplementedError) as e:
        logger.debug("stdin is not a pipe (%s); reading in executor", e)
        return ExecutorByteSource(stream)
    return reader


class OutputChannel:
    """Serialized writer for response lines.

    Each response is written as one line followed by a flush while holding a
    lock, so concurrent completions cannot interleave. The blocking write
    runs in the default executor; a client that stops reading stdout stalls
    only the pending sends, never the event loop.
    """

    def __init__(self, stream: BinaryIO | None = None) -> None:
        self._stream = stream if stream is not None else sys.stdout.buffer
        self._lock = asyncio.Lock()
        self.sent = 0

    def _write_line(self, line: bytes) -> None:
        self._stream.write(line)
        self._stream.flush()

    async def send(self, response: dict[str, Any]) -> None:
        line = (serialize(response) + "\n").encode("utf-8")
        loop = asyncio.get_running_loop()
        async with self._lock:
            await loop.run_in_executor(None, self._write_line, line)
            self.sent += 1

    async def flush(self) -> None:
        loop = asyncio.get_running_loop()
        async with self._lock:
            await loop.run_in_executor(None, self._stream.flush)


class StdioServer:
    """Reader loop plus per-line dispatch tasks.

    Attributes:
        dispatcher: Protocol dispatcher producing one response per line
        lifecycle: Shutdown coordinator (tracks tasks, owns the exit code)
        output: Response writer
    """

    def __init__(
        self,
        dispatcher: ProtocolDispatcher,
        lifecycle: LifecycleManager,
        output: OutputChannel | None = None,
        chunk_size: int = READ_CHUNK_SIZE,
    ) -> None:
        self.dispatcher = dispatcher
        self.lifecycle = lifecycle
        self.output = output or OutputChannel()
        self.chunk_size = chunk_size
        self._frames = ByteFrameReader()
        self._reader_task: asyncio.Task | None = None

        lifecycle.on_stop_input(self._stop_reading)
        lifecycle.on_cleanup(self.output.flush)

    async def serve(self, source: ByteSource) -> int:
        """
        Serve until a shutdown trigger fires.

        Args:
            source: Async byte source (stdin)

        Returns:
            Process exit code
        """
        self._reader_task = asyncio.create_task(self._read_loop(source))
        return await self.lifecycle.wait()

    def _stop_reading(self) -> None:
        task = self._reader_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _read_loop(self, source: ByteSource) -> None:
        try:
            while True:
                data = await source.read(self.chunk_size)
                if not data:
                    for line in self._frames.flush():
                        self._dispatch(line)
                    self.lifecycle.request_shutdown(EXIT_OK, "stdin closed")
                    return
                for line in self._frames.feed(data):
                    self._dispatch(line)
        except asyncio.CancelledError:
            logger.debug("Reader loop cancelled")
            raise
        except Exception as e:
            logger.exception("stdin error: %s", e)
            self.lifecycle.request_shutdown(EXIT_ERROR, f"stdin error: {e}")

    def _dispatch(self, line: str) -> None:
        self.lifecycle.track(asyncio.create_task(self._handle(line)))

    async def _handle(self, line: str) -> None:
        response = await self.dispatcher.handle_line(line)
        try:
            await self.output.send(response)
        except (OSError, ValueError) as e:
            # ValueError: write to a closed file
            logger.error("Failed to write response: %s", e)
            self.lifecycle.request_shutdown(EXIT_ERROR, f"stdout error: {e}")


__all__ = [
    "READ_CHUNK_SIZE",
    "ByteSource",
    "ExecutorByteSource",
    "OutputChannel",
    "StdioServer",
    "open_stdin_source",
]

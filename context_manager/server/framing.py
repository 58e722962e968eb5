"""
Newline-delimited framing for the stdio transport.

Each JSON-RPC message is one line. Input arrives in arbitrary chunks, so a
single buffer holds the unterminated tail between reads. After every chunk
the buffer is either empty or exactly the text after the last newline seen
so far, and the emitted lines do not depend on where chunk boundaries fall.
"""

import codecs


class FrameReader:
    """Accumulates text chunks and yields complete lines.

    Example:
        reader = FrameReader()
        reader.feed('{"jsonrpc":"2.0","method":"to')   # -> []
        reader.feed('ols/list","id":1}\\n')              # -> ['{"jsonrpc":...}']
    """

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def buffer(self) -> str:
        """Pending unterminated tail."""
        return self._buffer

    def feed(self, chunk: str) -> list[str]:
        """
        Append a chunk and return the lines it completed.

        Blank lines (after stripping whitespace) are dropped.

        Args:
            chunk: Text received from the stream

        Returns:
            Complete lines, without their terminating newline
        """
        if not chunk:
            return []
        pieces = (self._buffer + chunk).split("\n")
        self._buffer = pieces.pop()
        return [piece for piece in pieces if piece.strip()]

    def flush(self) -> list[str]:
        """
        Return the unterminated tail at end of stream and clear the buffer.

        Returns:
            A one-element list with the tail, or an empty list if it is blank
        """
        tail, self._buffer = self._buffer, ""
        return [tail] if tail.strip() else []


class ByteFrameReader:
    """FrameReader over raw bytes, decoding UTF-8 incrementally.

    Multi-byte characters split across reads are held back by the decoder
    until the rest of the sequence arrives.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._lines = FrameReader()

    @property
    def buffer(self) -> str:
        return self._lines.buffer

    def feed(self, data: bytes) -> list[str]:
        return self._lines.feed(self._decoder.decode(data))

    def flush(self) -> list[str]:
        lines = self._lines.feed(self._decoder.decode(b"", final=True))
        return lines + self._lines.flush()


__all__ = ["ByteFrameReader", "FrameReader"]

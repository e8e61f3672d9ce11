from typing import Callable


class LineSplitter:
    """
    Reassembles complete lines from a stream of arbitrarily split byte chunks.

    Each complete line is passed to `callback` without its terminator. Both
    `\\n` and `\\r\\n` endings are accepted. Whatever follows the last line feed
    stays buffered until the next `feed()` or the final `flush()`.
    """

    def __init__(self, callback: Callable[[bytes], None]) -> None:
        """
        :param callback: Called synchronously once per line, in stream order.
        """
        self.callback = callback
        self._buffer = bytearray()

    def feed(self, chunk: bytes) -> None:
        """
        Appends a chunk and emits every line it completes.

        :param chunk: Raw bytes read from the stream.
        """
        self._buffer.extend(chunk)
        while True:
            index = self._buffer.find(b"\n")
            if index == -1:
                break

            line = bytes(self._buffer[:index])
            # Advance before calling back so a failing callback cannot re-emit the line.
            del self._buffer[:index + 1]
            self.callback(_strip_cr(line))

    def flush(self) -> None:
        """Emits the unterminated remainder, if any, as the final line."""
        if not self._buffer:
            return
        line = bytes(self._buffer)
        self._buffer.clear()
        self.callback(_strip_cr(line))

    @property
    def pending(self) -> bytes:
        """The buffered bytes not yet emitted as a line."""
        return bytes(self._buffer)


def _strip_cr(line: bytes) -> bytes:
    return line[:-1] if line.endswith(b"\r") else line

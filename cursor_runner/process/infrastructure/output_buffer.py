"""Byte-capped accumulator for a child's output stream."""

from __future__ import annotations


class OutputBuffer:
    """
    Collects chunks from one pipe up to a byte ceiling.

    Once the ceiling is reached further bytes are counted but discarded, so
    the reader can keep draining the pipe without growing memory.
    """

    def __init__(self, limit: int) -> None:
        """
        Initialize the buffer.

        Args:
            limit: Maximum number of bytes retained.
        """
        if limit < 0:
            raise ValueError("limit must be non-negative")
        self.limit = limit
        self.total_bytes = 0
        self.truncated = False
        self._data = bytearray()

    def append(self, chunk: bytes) -> None:
        """
        Append a chunk, keeping at most ``limit`` bytes overall.

        Args:
            chunk: Bytes read from the pipe.
        """
        self.total_bytes += len(chunk)
        remaining = self.limit - len(self._data)
        if remaining <= 0:
            if chunk:
                self.truncated = True
            return
        if len(chunk) > remaining:
            self._data.extend(chunk[:remaining])
            self.truncated = True
        else:
            self._data.extend(chunk)

    def __len__(self) -> int:
        return len(self._data)

    def text(self) -> str:
        """
        Decode the retained bytes as UTF-8.

        Invalid bytes become U+FFFD. When the cap cut the output, a multi-byte
        character left incomplete at the end is dropped instead.

        Returns:
            Decoded output.
        """
        data = bytes(self._data)
        if self.truncated:
            data = data[: _complete_length(data)]
        return data.decode("utf-8", errors="replace")


def _complete_length(data: bytes) -> int:
    """Length of ``data`` without an unfinished trailing UTF-8 sequence."""
    for back in range(1, min(4, len(data)) + 1):
        byte = data[-back]
        if byte & 0xC0 == 0x80:
            continue
        if byte >= 0xF8:
            needed = 1
        elif byte >= 0xF0:
            needed = 4
        elif byte >= 0xE0:
            needed = 3
        elif byte >= 0xC0:
            needed = 2
        else:
            needed = 1
        return len(data) - back if needed > back else len(data)
    return len(data)

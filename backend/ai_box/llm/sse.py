"""Incremental server-sent-events frame reader."""

from __future__ import annotations

import codecs
from typing import Iterable, Iterator

DATA_PREFIX = "data: "


class SSEFrameReader:
    """Turn arbitrarily split byte reads into ``data:`` payloads.

    Network reads rarely line up with event boundaries, so undecoded bytes and
    the unterminated tail of the last line stay buffered until the next
    :meth:`feed`. Invalid UTF-8 is replaced rather than raised, and a
    multi-byte character split across two reads is reassembled by the
    incremental decoder.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, data: bytes) -> list[str]:
        """Consume one read and return every payload completed by it."""
        self._buffer += self._decoder.decode(data)
        payloads: list[str] = []
        while True:
            newline = self._buffer.find("\n")
            if newline < 0:
                break
            line = self._buffer[:newline]
            self._buffer = self._buffer[newline + 1 :]
            payload = _extract_payload(line)
            if payload is not None:
                payloads.append(payload)
        return payloads

    def flush(self) -> list[str]:
        """Drain whatever is left once the transport has closed."""
        self._buffer += self._decoder.decode(b"", final=True)
        line, self._buffer = self._buffer, ""
        payload = _extract_payload(line)
        return [payload] if payload is not None else []


def _extract_payload(line: str) -> str | None:
    # "\r\n" endings leave a trailing "\r"; strip() handles it with the rest.
    line = line.strip()
    if not line.startswith(DATA_PREFIX):
        return None
    return line[len(DATA_PREFIX) :]


def iter_sse_payloads(byte_chunks: Iterable[bytes]) -> Iterator[str]:
    """Yield payloads from an iterable of raw reads, including a final unterminated line."""
    reader = SSEFrameReader()
    for chunk in byte_chunks:
        if not chunk:
            continue
        yield from reader.feed(chunk)
    yield from reader.flush()


__all__ = ["SSEFrameReader", "iter_sse_payloads", "DATA_PREFIX"]

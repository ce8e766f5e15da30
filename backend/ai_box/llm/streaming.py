"""Helpers that turn chunk iterators into callback deliveries."""

from __future__ import annotations

from typing import Callable, Iterable, Iterator

from ai_box.llm.types import TERMINAL_CHUNK, StreamChunk

ChunkCallback = Callable[[StreamChunk], None]


def with_terminal(chunks: Iterable[StreamChunk]) -> Iterator[StreamChunk]:
    """Pass chunks through up to the first terminal one, synthesizing it if the source ends early.

    A generator source is closed as soon as this iterator stops, so its
    cleanup runs before the caller moves on.
    """
    source = iter(chunks)
    try:
        for chunk in source:
            yield chunk
            if chunk.done:
                return
        yield TERMINAL_CHUNK
    finally:
        close = getattr(source, "close", None)
        if close is not None:
            close()


def deliver(chunks: Iterable[StreamChunk], on_chunk: ChunkCallback) -> str:
    """Invoke ``on_chunk`` for every chunk in order and return the concatenated text.

    Callbacks already made are not undone if the iterator raises part way.
    """
    parts: list[str] = []
    for chunk in with_terminal(chunks):
        if chunk.delta:
            parts.append(chunk.delta)
        on_chunk(chunk)
    return "".join(parts)


__all__ = ["ChunkCallback", "with_terminal", "deliver"]

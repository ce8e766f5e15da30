"""Tests for the SSE frame reader."""

from ai_box.llm.sse import SSEFrameReader, iter_sse_payloads


def test_payload_split_across_reads() -> None:
    reader = SSEFrameReader()
    assert reader.feed(b'data: {"a":') == []
    assert reader.pending == 'data: {"a":'
    assert reader.feed(b"1}\n\n") == ['{"a":1}']
    assert reader.pending == ""


def test_multibyte_character_split_across_reads() -> None:
    reader = SSEFrameReader()
    encoded = "data: café\n".encode("utf-8")
    cut = encoded.index(b"\xc3") + 1
    assert reader.feed(encoded[:cut]) == []
    assert reader.feed(encoded[cut:]) == ["café"]


def test_invalid_utf8_is_replaced() -> None:
    reader = SSEFrameReader()
    assert reader.feed(b"data: \xffok\n") == ["\ufffdok"]


def test_non_data_lines_and_crlf() -> None:
    reader = SSEFrameReader()
    raw = b"event: message\r\n: keep-alive\r\ndata: one\r\n\r\ndata: two\r\n"
    assert reader.feed(raw) == ["one", "two"]


def test_flush_returns_unterminated_tail() -> None:
    reader = SSEFrameReader()
    assert reader.feed(b"data: first\ndata: tail") == ["first"]
    assert reader.flush() == ["tail"]
    assert reader.flush() == []


def test_iter_payloads_over_many_reads() -> None:
    stream = b"data: a\n\ndata: b\n\ndata: c"
    reads = [stream[i : i + 3] for i in range(0, len(stream), 3)]
    assert list(iter_sse_payloads(reads)) == ["a", "b", "c"]

# tests/unit/test_framing.py

from __future__ import annotations
import sys
from pathlib import Path
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from gitlog_reporter.core.errors import ProtocolError
from gitlog_reporter.streaming.framing import LineFramer, SSEFramer


def test_sse_waits_for_blank_line():
    f = SSEFramer()
    assert f.feed(b'data: {"a":1}\n') == []
    assert f.feed(b"\n") == ['{"a":1}']
    assert f.pending == ""


def test_sse_multiple_messages_in_one_chunk_and_non_data_lines():
    f = SSEFramer()
    out = f.feed(
        b"event: message_start\ndata: one\n\n"
        b": keep-alive comment\n\n"
        b"id: 7\ndata: two\ndata: three\n\n"
    )
    assert out == ["one", "two", "three"]


def test_sse_requires_exact_prefix():
    f = SSEFramer()
    assert f.feed(b"data:nospace\n\n") == []
    assert f.feed(b"data: ok\n\n") == ["ok"]


def test_sse_crlf_boundaries_split_across_chunks():
    f = SSEFramer()
    assert f.feed(b"data: x\r\n\r") == []
    assert f.feed(b"\ndata: y\r\n\r\n") == ["x", "y"]


def test_sse_close_drops_incomplete_frame():
    f = SSEFramer()
    assert f.feed(b"data: complete\n\ndata: half") == ["complete"]
    assert f.close() == []
    assert f.pending == ""


def test_utf8_codepoint_split_across_chunks():
    encoded = "data: héllo ✓\n\n".encode("utf-8")
    cut = encoded.index("✓".encode("utf-8")) + 1   # inside the 3-byte sequence
    f = SSEFramer()
    assert f.feed(encoded[:cut]) == []
    assert f.feed(encoded[cut:]) == ["héllo ✓"]


def test_invalid_utf8_is_replaced_not_fatal():
    f = LineFramer()
    assert f.feed(b"ab\xffcd\n") == ["ab\ufffdcd"]


def test_line_framer_trims_and_skips_blank_lines():
    f = LineFramer()
    assert f.feed(b'  {"a":1}  \n\n\r\n{"b"') == ['{"a":1}']
    assert f.feed(b':2}\n') == ['{"b":2}']
    assert f.feed(b'{"tail":') == []
    assert f.close() == []


def test_buffer_limit_raises_protocol_error():
    f = SSEFramer(max_buffer=16)
    f.feed(b"data: 0123")
    with pytest.raises(ProtocolError):
        f.feed(b"456789abcdef")


def test_buffer_limit_ignores_complete_frames_in_one_large_chunk():
    frame = b'data: {"choices":[{"delta":{"content":"x"}}]}\n\n'
    f = SSEFramer(max_buffer=2 * len(frame))
    out = f.feed(frame * 10)
    assert len(out) == 10
    assert f.pending == ""


def test_line_framer_buffer_limit_counts_only_remainder():
    f = LineFramer(max_buffer=8)
    assert f.feed(b'{"a":1}\n' * 5 + b'{"b"') == ['{"a":1}'] * 5
    with pytest.raises(ProtocolError):
        f.feed(b':"overflowing"')

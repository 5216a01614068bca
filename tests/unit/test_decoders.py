# tests/unit/test_decoders.py

from __future__ import annotations
import json
import random
import sys
from pathlib import Path
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from gitlog_reporter.providers.descriptor import ProviderDescriptor, ProviderKind
from gitlog_reporter.providers.registry import ProviderRegistry
from gitlog_reporter.providers.openai_adapter import extract_chat_delta
from gitlog_reporter.providers.anthropic_adapter import extract_content_block_delta
from gitlog_reporter.providers.google_adapter import extract_candidate_parts

ProviderRegistry.ensure_imports()


def _decoder(kind: ProviderKind):
    d = ProviderDescriptor.create(kind, api_key="k", model="m")
    return ProviderRegistry.get(kind)(d).decoder()


def _openai(text: str) -> str:
    return "data: " + json.dumps({"choices": [{"delta": {"content": text}}]}, ensure_ascii=False) + "\n\n"


def _anthropic(text: str) -> str:
    ev = {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": text}}
    return "event: content_block_delta\ndata: " + json.dumps(ev, ensure_ascii=False) + "\n\n"


def _google(*texts: str) -> str:
    obj = {"candidates": [{"content": {"parts": [{"text": t} for t in texts], "role": "model"}}]}
    return json.dumps(obj, ensure_ascii=False) + "\n"


OPENAI_STREAM = (
    'data: {"choices":[{"delta":{"role":"assistant"}}]}\n\n'
    + _openai("Fixed ")
    + _openai("a bug — ünïcödé ✓ ")
    + _openai("done.")
    + 'data: {"choices":[{"delta":{},"finish_reason":"stop"}]}\n\n'
    + "data: [DONE]\n\n"
).encode("utf-8")

ANTHROPIC_STREAM = (
    'event: message_start\ndata: {"type":"message_start","message":{"id":"msg_1"}}\n\n'
    'event: content_block_start\ndata: {"type":"content_block_start","index":0}\n\n'
    'event: ping\ndata: {"type": "ping"}\n\n'
    + _anthropic("Hello, ")
    + _anthropic("wörld ✓")
    + 'event: content_block_stop\ndata: {"type":"content_block_stop","index":0}\n\n'
    'event: message_stop\ndata: {"type":"message_stop"}\n\n'
).encode("utf-8")

GOOGLE_STREAM = (
    _google("Weekly ", "summary: ")
    + _google("ünïcödé ✓")
    + '{"usageMetadata":{"promptTokenCount":3}}\n'
).encode("utf-8")

CASES = [
    (ProviderKind.OPENAI, OPENAI_STREAM, "Fixed a bug — ünïcödé ✓ done."),
    (ProviderKind.ANTHROPIC, ANTHROPIC_STREAM, "Hello, wörld ✓"),
    (ProviderKind.GOOGLE, GOOGLE_STREAM, "Weekly summary: ünïcödé ✓"),
]


@pytest.mark.parametrize("kind,payload,expected", CASES)
def test_whole_payload_in_one_chunk(kind, payload, expected):
    assert "".join(_decoder(kind).decode_all([payload])) == expected


@pytest.mark.parametrize("kind,payload,expected", CASES)
def test_every_two_way_split_gives_same_text(kind, payload, expected):
    # covers mid-frame, mid-JSON-token and mid-code-point cuts
    for cut in range(1, len(payload)):
        deltas = _decoder(kind).decode_all([payload[:cut], payload[cut:]])
        assert "".join(deltas) == expected, f"split at byte {cut}"


@pytest.mark.parametrize("kind,payload,expected", CASES)
def test_byte_at_a_time_and_random_splits(kind, payload, expected):
    assert "".join(_decoder(kind).decode_all([payload[i:i + 1] for i in range(len(payload))])) == expected

    rng = random.Random(1234)
    for _ in range(50):
        cuts = sorted(rng.sample(range(1, len(payload)), 5))
        pieces = [payload[a:b] for a, b in zip([0] + cuts, cuts + [len(payload)])]
        assert "".join(_decoder(kind).decode_all(pieces)) == expected


def test_openai_done_only_yields_nothing():
    dec = _decoder(ProviderKind.OPENAI)
    assert dec.decode_all([b"data: [DONE]\n\n"]) == []
    assert dec.done_seen is True
    assert dec.frames == 0


@pytest.mark.parametrize(
    "kind,good_a,good_b",
    [
        (ProviderKind.OPENAI, _openai("one "), _openai("two")),
        (ProviderKind.ANTHROPIC, _anthropic("one "), _anthropic("two")),
        (ProviderKind.GOOGLE, _google("one "), _google("two")),
    ],
)
def test_malformed_fragment_between_valid_ones_is_skipped(kind, good_a, good_b):
    bad = '{"choices": [ {"delta": ' + ("\n" if kind is ProviderKind.GOOGLE else "")
    if kind is not ProviderKind.GOOGLE:
        bad = "data: " + bad + "\n\n"
    dec = _decoder(kind)
    out = dec.decode_all([(good_a + bad + good_b).encode("utf-8")])
    assert out == ["one ", "two"]
    assert dec.dropped == 1


def test_google_line_with_two_parts_yields_two_deltas_in_one_feed():
    dec = _decoder(ProviderKind.GOOGLE)
    first = list(dec.feed(_google("alpha", "beta").encode("utf-8")))
    assert first == ["alpha", "beta"]
    assert list(dec.feed(_google("gamma").encode("utf-8"))) == ["gamma"]


def test_anthropic_ignores_done_token_as_malformed():
    dec = _decoder(ProviderKind.ANTHROPIC)
    assert dec.decode_all([b"data: [DONE]\n\n" + _anthropic("x").encode()]) == ["x"]


def test_extractors_tolerate_odd_shapes():
    assert extract_chat_delta({"choices": []}) == []
    assert extract_chat_delta({"choices": [{"delta": {"content": None}}]}) == []
    assert extract_chat_delta([1, 2]) == []
    assert extract_chat_delta({"choices": [{"delta": {"content": 5}}]}) == []

    assert extract_content_block_delta({"type": "content_block_delta", "delta": {"type": "input_json_delta"}}) == []
    assert extract_content_block_delta({"type": "message_delta", "delta": {"text": "no"}}) == []
    assert extract_content_block_delta("content_block_delta") == []

    assert extract_candidate_parts({"candidates": [{"content": {"parts": "x"}}]}) == []
    assert extract_candidate_parts({"candidates": [{"finishReason": "STOP"}]}) == []
    assert extract_candidate_parts(
        {"candidates": [{"content": {"parts": [{"text": "a"}, {"inlineData": {}}, {"text": ""}, {"text": "b"}]}}]}
    ) == ["a", "b"]


def test_deeply_nested_fragment_is_dropped_not_fatal():
    nested = "[" * 100000 + "]" * 100000
    dec = _decoder(ProviderKind.OPENAI)
    out = dec.decode_all([f"data: {nested}\n\n".encode() + _openai("ok").encode()])
    assert out == ["ok"]
    assert dec.dropped == 1

from __future__ import annotations
from typing import Any, List

from gitlog_reporter.providers.descriptor import ProviderDescriptor, ProviderKind
from gitlog_reporter.providers.registry import ProviderRegistry
from gitlog_reporter.streaming.decoder import FrameDecoder
from gitlog_reporter.streaming.framing import LineFramer
from gitlog_reporter.transport.client import HttpRequest


def extract_candidate_parts(fragment: Any) -> List[str]:
    """Every text part of candidates[0].content.parts, in array order."""
    try:
        parts = fragment["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return []
    if not isinstance(parts, list):
        return []
    texts: List[str] = []
    for part in parts:
        text = part.get("text") if isinstance(part, dict) else None
        if isinstance(text, str) and text:
            texts.append(text)
    return texts


@ProviderRegistry.register(ProviderKind.GOOGLE)
class GoogleAdapter:
    """
    Generative Language API. The key travels as a query parameter, so request
    URLs must go through redact_url() before they are logged.
    Streaming responses are newline-delimited JSON objects.
    """

    def __init__(self, descriptor: ProviderDescriptor):
        self.descriptor = descriptor
        self.model = descriptor.model

    def _url(self, method: str) -> str:
        d = self.descriptor
        return f"{d.root}/models/{d.model}:{method}?key={d.api_key}"

    @staticmethod
    def _body(text: str) -> dict:
        return {"contents": [{"parts": [{"text": text}]}]}

    def stream_request(self, prompt: str) -> HttpRequest:
        return HttpRequest(
            url=self._url("streamGenerateContent"),
            headers={"Content-Type": "application/json"},
            json=self._body(prompt),
        )

    def probe_request(self) -> HttpRequest:
        body = self._body("test")
        body["generationConfig"] = {"maxOutputTokens": 5}
        return HttpRequest(
            url=self._url("generateContent"),
            headers={"Content-Type": "application/json"},
            json=body,
        )

    def decoder(self) -> FrameDecoder:
        return FrameDecoder(LineFramer(), extract_candidate_parts)

from __future__ import annotations
from typing import Any, List

from gitlog_reporter.providers.descriptor import ProviderDescriptor, ProviderKind
from gitlog_reporter.providers.registry import ProviderRegistry
from gitlog_reporter.streaming.decoder import FrameDecoder
from gitlog_reporter.streaming.framing import SSEFramer
from gitlog_reporter.transport.client import HttpRequest

ANTHROPIC_VERSION = "2023-06-01"
MAX_TOKENS = 4096

CONTENT_DELTA = "content_block_delta"


def extract_content_block_delta(fragment: Any) -> List[str]:
    # message_start/stop, ping, content_block_start/stop: nothing to emit
    if not isinstance(fragment, dict) or fragment.get("type") != CONTENT_DELTA:
        return []
    delta = fragment.get("delta")
    text = delta.get("text") if isinstance(delta, dict) else None
    return [text] if isinstance(text, str) and text else []


@ProviderRegistry.register(ProviderKind.ANTHROPIC)
class AnthropicAdapter:
    """Messages API: POST {base}/v1/messages, typed SSE events."""

    def __init__(self, descriptor: ProviderDescriptor):
        self.descriptor = descriptor
        self.model = descriptor.model

    def _headers(self) -> dict:
        return {
            "x-api-key": self.descriptor.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }

    def stream_request(self, prompt: str) -> HttpRequest:
        return HttpRequest(
            url=f"{self.descriptor.root}/v1/messages",
            headers=self._headers(),
            json={
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "max_tokens": MAX_TOKENS,
                "stream": True,
            },
        )

    def probe_request(self) -> HttpRequest:
        return HttpRequest(
            url=f"{self.descriptor.root}/v1/messages",
            headers=self._headers(),
            json={
                "model": self.model,
                "messages": [{"role": "user", "content": "test"}],
                "max_tokens": 5,
            },
        )

    def decoder(self) -> FrameDecoder:
        return FrameDecoder(SSEFramer(), extract_content_block_delta)

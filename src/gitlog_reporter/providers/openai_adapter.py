from __future__ import annotations
from typing import Any, List

from gitlog_reporter.providers.descriptor import ProviderDescriptor, ProviderKind
from gitlog_reporter.providers.registry import ProviderRegistry
from gitlog_reporter.streaming.decoder import FrameDecoder
from gitlog_reporter.streaming.framing import SSEFramer
from gitlog_reporter.transport.client import HttpRequest

DONE_TOKEN = "[DONE]"


def extract_chat_delta(fragment: Any) -> List[str]:
    """choices[0].delta.content, when it is a string; role-only and finish chunks carry none."""
    try:
        content = fragment["choices"][0]["delta"]["content"]
    except (KeyError, IndexError, TypeError):
        return []
    return [content] if isinstance(content, str) and content else []


@ProviderRegistry.register(ProviderKind.OPENAI)
class OpenAIAdapter:
    """
    OpenAI-compatible backends (OpenAI, DeepSeek, local servers, ...):
    - POST {base}/chat/completions with a bearer token
    - SSE response of `data: {...}` messages, terminated by `data: [DONE]`
    """

    def __init__(self, descriptor: ProviderDescriptor):
        self.descriptor = descriptor
        self.model = descriptor.model

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.descriptor.api_key}",
            "Content-Type": "application/json",
        }

    def stream_request(self, prompt: str) -> HttpRequest:
        return HttpRequest(
            url=f"{self.descriptor.root}/chat/completions",
            headers=self._headers(),
            json={
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "stream": True,
            },
        )

    def probe_request(self) -> HttpRequest:
        return HttpRequest(
            url=f"{self.descriptor.root}/chat/completions",
            headers=self._headers(),
            json={
                "model": self.model,
                "messages": [{"role": "user", "content": "test"}],
                "max_tokens": 5,
            },
        )

    def decoder(self) -> FrameDecoder:
        return FrameDecoder(SSEFramer(), extract_chat_delta, done_token=DONE_TOKEN)

from __future__ import annotations
import asyncio
import logging
from typing import Optional

from gitlog_reporter.core.errors import EmptyResponse, TransportTimeout
from gitlog_reporter.core.ports import ProgressSink
from gitlog_reporter.providers.descriptor import ProviderDescriptor
from gitlog_reporter.providers.registry import ProviderRegistry
from gitlog_reporter.streaming.aggregator import Aggregator
from gitlog_reporter.transport.client import TransportClient, redact_url

_logger = logging.getLogger(__name__)


class StreamingEngine:
    """
    One call = one request to one backend. The transport is shared; decoder
    and aggregator state is created per call and never leaves it.

    Every call is bounded by `timeout` seconds end to end (connect, headers,
    full body drain, and time spent in the progress sink). Nothing is retried.
    """

    def __init__(self, transport: TransportClient, *, timeout: Optional[float] = None):
        ProviderRegistry.ensure_imports()
        self.transport = transport
        self.timeout = float(timeout) if timeout is not None else transport.timeout

    def adapter_for(self, descriptor: ProviderDescriptor):
        return ProviderRegistry.get(descriptor.kind)(descriptor)

    async def generate(
        self,
        descriptor: ProviderDescriptor,
        prompt: str,
        sink: Optional[ProgressSink] = None,
    ) -> str:
        """
        Stream a completion for `prompt`, pushing each text delta to `sink`
        as it is decoded. Returns the full text, or raises a StreamError;
        partial text is never returned.
        """
        adapter = self.adapter_for(descriptor)
        try:
            return await asyncio.wait_for(self._stream(adapter, prompt, sink), self.timeout)
        except asyncio.TimeoutError as exc:
            _logger.warning("Generation timed out after %gs (%s)", self.timeout, descriptor.kind.value)
            raise TransportTimeout(self.timeout) from exc

    async def _stream(self, adapter, prompt: str, sink: Optional[ProgressSink]) -> str:
        request = adapter.stream_request(prompt)
        decoder = adapter.decoder()
        aggregator = Aggregator(sink)
        _logger.info(
            "Streaming %s model=%s url=%s",
            adapter.descriptor.kind.value, adapter.model, redact_url(request.url),
        )

        chunks = self.transport.stream(request)
        try:
            async for chunk in chunks:
                for delta in decoder.feed(chunk):
                    aggregator.add(delta)
            for delta in decoder.close():
                aggregator.add(delta)
        finally:
            await chunks.aclose()

        _logger.info(
            "Stream finished: %d deltas, %d chars, %d frames (%d dropped)",
            aggregator.count, aggregator.chars, decoder.frames, decoder.dropped,
        )
        try:
            return aggregator.result()
        except EmptyResponse:
            _logger.warning("Backend stream ended without any content (%s)", adapter.model)
            raise

    async def test_connection(
        self,
        descriptor: ProviderDescriptor,
        sink: Optional[ProgressSink] = None,
    ) -> bool:
        """
        Minimal non-streaming request; True for any 2xx. The body is not read
        for content, so `sink` is accepted for symmetry and never called.
        """
        adapter = self.adapter_for(descriptor)
        request = adapter.probe_request()
        _logger.info("Probing %s url=%s", descriptor.kind.value, redact_url(request.url))
        try:
            status = await asyncio.wait_for(self.transport.send(request), self.timeout)
        except asyncio.TimeoutError as exc:
            raise TransportTimeout(self.timeout) from exc
        ok = 200 <= status < 300
        if not ok:
            _logger.warning("Connection test failed: HTTP %d", status)
        return ok

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import httpx
from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from gitlog_reporter.bootstrap import build_app
from gitlog_reporter.core.errors import StreamError

_END = object()


class GenerateRequest(BaseModel):
    prompt: str


class QueueSink:
    """Progress sink that hands deltas to the response generator via a queue."""

    def __init__(self, queue: "asyncio.Queue[object]"):
        self.queue = queue

    def on_delta(self, text: str) -> None:
        self.queue.put_nowait(text)


async def stream_generation(engine, descriptor, prompt: str) -> AsyncIterator[str]:
    """
    Run one generation in a task and yield its deltas as they arrive. A
    StreamError becomes a trailing `[error]` line, since the status code has
    already been sent by then.
    """
    queue: "asyncio.Queue[object]" = asyncio.Queue()
    task = asyncio.create_task(engine.generate(descriptor, prompt, QueueSink(queue)))
    # queued after every delta the task produced
    task.add_done_callback(lambda _t: queue.put_nowait(_END))
    try:
        while True:
            item = await queue.get()
            if item is _END:
                break
            yield item
        try:
            task.result()
        except StreamError as e:
            yield f"\n[error] {e}"
    finally:
        if not task.done():
            task.cancel()
        elif not task.cancelled():
            # client went away after the task finished; mark its error as seen
            task.exception()


def create_app(
    config_path: Path,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    ctx = build_app(Path(config_path), transport=transport)
    descriptor = ctx["descriptor"]
    engine = ctx["engine"]

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        await ctx["transport"].aclose()

    app = FastAPI(lifespan=lifespan)
    app.state.cfg = ctx["cfg"]
    app.state.descriptor = descriptor
    app.state.engine = engine

    @app.get("/api/config")
    def api_config():
        return JSONResponse(
            {
                "provider": descriptor.kind.value,
                "model": descriptor.model,
                "base_url": descriptor.base_url,
                "timeout": engine.timeout,
            }
        )

    @app.post("/api/test-connection")
    async def api_test_connection():
        try:
            ok = await engine.test_connection(descriptor)
        except StreamError as e:
            raise HTTPException(status_code=502, detail=str(e))
        return JSONResponse({"ok": ok})

    @app.post("/api/generate")
    async def api_generate(req: GenerateRequest):
        if not req.prompt.strip():
            raise HTTPException(status_code=400, detail="Empty prompt")

        return StreamingResponse(
            stream_generation(engine, descriptor, req.prompt),
            media_type="text/plain; charset=utf-8",
        )

    return app


def run(
    *,
    config: Path,
    host: str = "127.0.0.1",
    port: int = 8000,
) -> None:
    import uvicorn

    app = create_app(config)
    uvicorn.run(app, host=host, port=port)

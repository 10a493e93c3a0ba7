"""
Progress reporting over server-sent events.

The producer (a pipeline or driver) runs as a background task and pushes
frames into a ProgressChannel; the HTTP response drains ``stream()``. This
is a best-effort live feed: nothing is replayed, and a client that goes away
simply stops reading while the producer runs to completion.
"""

import asyncio

from webbuilder.sse_utils import sse_data


STAGE_ORDER = ["scraping", "rewriting", "reimaging", "seo", "verifying", "complete"]
TERMINAL_STAGES = {"complete", "error"}

_background_tasks: set[asyncio.Task] = set()


class StageTransitionError(Exception):
    pass


class StageTracker:
    """Enforces scraping -> rewriting -> reimaging -> seo -> verifying -> complete|error."""

    def __init__(self):
        self.current: str | None = None

    @property
    def finished(self) -> bool:
        return self.current in TERMINAL_STAGES

    def advance(self, stage: str) -> None:
        if self.finished:
            raise StageTransitionError(f"Cannot enter '{stage}' after '{self.current}'")
        if stage == "error":
            self.current = stage
            return
        if stage not in STAGE_ORDER:
            raise StageTransitionError(f"Unknown stage '{stage}'")
        if self.current is not None and STAGE_ORDER.index(stage) < STAGE_ORDER.index(self.current):
            raise StageTransitionError(f"Cannot go back from '{self.current}' to '{stage}'")
        self.current = stage


class ProgressChannel:
    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, payload: dict) -> None:
        if self._closed:
            return
        self._queue.put_nowait(sse_data(payload))

    def emit(self, event_type: str, data: dict | None = None) -> None:
        self.send({"type": event_type, **(data or {})})

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    async def stream(self):
        """Yield frames until the producer closes the channel."""
        while True:
            frame = await self._queue.get()
            if frame is None:
                break
            yield frame


def spawn_background(coro) -> asyncio.Task:
    """Run ``coro`` detached from the request; failures are logged."""
    task = asyncio.create_task(coro)
    _background_tasks.add(task)

    def _done(t: asyncio.Task):
        _background_tasks.discard(t)
        if not t.cancelled() and t.exception() is not None:
            print(f"[background] Task failed: {t.exception()}")

    task.add_done_callback(_done)
    return task


def run_in_channel(job) -> ProgressChannel:
    """
    Start ``job(channel)`` in the background and return the channel.

    An exception escaping the job becomes a final ``error`` frame; the
    channel is always closed afterwards.
    """
    channel = ProgressChannel()

    async def _runner():
        try:
            await job(channel)
        except Exception as e:
            print(f"[sse] Job failed: {e}")
            channel.emit("error", {"error": str(e)})
        finally:
            channel.close()

    spawn_background(_runner())
    return channel

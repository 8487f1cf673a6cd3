"""
FrameQueue: one speaker's live frame stream, fed by the transport.

- feed() is sync and non-blocking; call it from the transport callback.
- end() is the transport's own end-of-speech signal.
- next_frame(timeout) waits for the next frame; None means end of speech
  (explicit end or no frame within the silence timeout).
- close() is called once by the consumer when it stops capturing. Frames that
  were already queued are handed back; later feed() calls are refused so the
  transport can start a fresh utterance instead.
"""
from __future__ import annotations

import asyncio

_END = None


class FrameQueue:
    """Unbounded queue of compressed frames for a single utterance."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue()
        self._ended = False
        self._closed = False

    def feed(self, frame: bytes) -> bool:
        """Append one frame. Returns False if the stream no longer accepts frames."""
        if self._closed or self._ended:
            return False
        self._queue.put_nowait(frame)
        return True

    def end(self) -> None:
        """Signal end of speech. Idempotent."""
        if self._closed or self._ended:
            return
        self._ended = True
        self._queue.put_nowait(_END)

    async def next_frame(self, timeout: float | None = None) -> bytes | None:
        """Next frame, or None on end of speech / silence timeout."""
        if self._closed:
            return None
        try:
            if timeout is None:
                frame = await self._queue.get()
            else:
                frame = await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None
        return frame

    def close(self) -> list[bytes]:
        """Stop accepting frames. Returns frames queued but not yet consumed."""
        self._closed = True
        leftover: list[bytes] = []
        while True:
            try:
                frame = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            if frame is not _END:
                leftover.append(frame)
        return leftover

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def accepting(self) -> bool:
        return not (self._closed or self._ended)

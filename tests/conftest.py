import asyncio
import threading
from unittest.mock import AsyncMock, MagicMock

import pytest

from dazzle.config import Settings
from dazzle.container_manager import ContainerManager
from dazzle.models import ContainerHandle, ContainerState, LogChunk, StreamType

CONTAINER_ID = "4f1c2a9be0d35c6e7a8b9c0d1e2f3a4b5c6d7e8f9a0b1c2d3e4f5a6b7c8d9e0f"


class FakeChannel:
    """Log channel that yields fixed chunks, then ends or blocks until closed."""

    def __init__(self, chunks=(), block=False, error=None):
        self._chunks = list(chunks)
        self.block = block
        self.error = error
        self.closed = False
        self._closed_event = threading.Event()

    def chunks(self):
        for chunk in self._chunks:
            yield chunk
        if self.error is not None:
            raise self.error
        if self.block:
            self._closed_event.wait(5)
            raise OSError("channel closed")

    def close(self):
        self.closed = True
        self._closed_event.set()


class IdleWatcher:
    """Termination watcher that never fires."""

    async def wait(self):
        await asyncio.Event().wait()


class DelayedWatcher:
    """Termination watcher that fires ``sig`` after ``delay`` seconds."""

    def __init__(self, sig, delay=0.05):
        self.sig = sig
        self.delay = delay

    async def wait(self):
        await asyncio.sleep(self.delay)
        return self.sig


def stdout(data: bytes) -> LogChunk:
    return LogChunk(StreamType.STDOUT, data)


def stderr(data: bytes) -> LogChunk:
    return LogChunk(StreamType.STDERR, data)


@pytest.fixture
def handle():
    return ContainerHandle(container_id=CONTAINER_ID, state=ContainerState.RUNNING)


@pytest.fixture
def manager(handle):
    """ContainerManager with every Docker-facing method mocked."""
    mock = MagicMock(spec=ContainerManager)
    mock.ensure_image = AsyncMock()
    mock.launch = AsyncMock(return_value=handle)
    mock.wait_exit_code = AsyncMock(return_value=0)
    mock.remove_container = AsyncMock(return_value=True)
    mock.open_log_channel = MagicMock(return_value=FakeChannel())
    return mock


@pytest.fixture
def settings():
    return Settings(raw_terminal=False, stream_grace_seconds=0.2, exit_wait_seconds=0.1)

import asyncio
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from typing import IO, Optional

from docker.errors import DockerException
from requests.exceptions import RequestException

from dazzle.container_manager import ContainerManager
from dazzle.models import ContainerHandle, LogChunk, StreamType

logger = logging.getLogger(__name__)


def write_chunk(target: IO, data: bytes) -> None:
    """Write raw bytes to a text stream, via its binary buffer when it has one."""
    buffer = getattr(target, "buffer", None)
    if buffer is not None:
        buffer.write(data)
        buffer.flush()
        return
    target.write(data.decode("utf-8", errors="replace"))
    target.flush()


class LogStreamer:
    """Forwards a running container's output to the local terminal.

    stdout frames go to ``stdout`` and stderr frames to ``stderr``; frames
    tagged as stdin are dropped. ``stream`` runs until the container closes its
    output, the channel errors, the cancel event is set or the task is
    cancelled, whichever comes first.
    """

    def __init__(
        self,
        manager: ContainerManager,
        stdout: Optional[IO] = None,
        stderr: Optional[IO] = None,
        tty: bool = True,
    ):
        self.manager = manager
        self._stdout = stdout
        self._stderr = stderr
        self.tty = tty

    @property
    def stdout(self) -> IO:
        return self._stdout or sys.stdout

    @property
    def stderr(self) -> IO:
        return self._stderr or sys.stderr

    async def stream(self, handle: ContainerHandle, cancel: asyncio.Event) -> int:
        """Stream logs for ``handle``; returns the number of chunks forwarded."""
        if cancel.is_set():
            return 0

        loop = asyncio.get_event_loop()
        # Reads block until the container writes, so they get their own thread
        # that can be abandoned once the channel is closed.
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="dazzle-logs")
        channel = None
        forwarded = 0
        try:
            try:
                channel = await loop.run_in_executor(
                    executor,
                    lambda: self.manager.open_log_channel(handle, tty=self.tty),
                )
            except (DockerException, RequestException) as e:
                logger.warning(f"stream failed: cannot attach to {handle.short_id}: {e}")
                return 0

            chunks = channel.chunks()
            while not cancel.is_set():
                try:
                    chunk = await loop.run_in_executor(executor, next, chunks, None)
                except Exception as e:
                    if not cancel.is_set():
                        logger.warning(f"stream failed: {handle.short_id}: {e}")
                    break
                if chunk is None:
                    logger.debug(f"Log stream of {handle.short_id} closed")
                    break
                if self.forward(chunk):
                    forwarded += 1
        finally:
            if channel is not None:
                channel.close()
            executor.shutdown(wait=False)

        return forwarded

    def forward(self, chunk: LogChunk) -> bool:
        """Write one chunk to the matching local stream. Returns True if written."""
        if chunk.stream is StreamType.STDOUT:
            target = self.stdout
        elif chunk.stream is StreamType.STDERR:
            target = self.stderr
        else:
            logger.debug(f"Dropping {len(chunk.data)} bytes tagged {chunk.stream.name}")
            return False

        try:
            write_chunk(target, chunk.data)
        except (OSError, ValueError) as e:
            logger.warning(f"stream failed: cannot write {chunk.stream.name.lower()} chunk: {e}")
            return False
        return True

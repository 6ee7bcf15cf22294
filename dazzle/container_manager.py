import asyncio
import logging
import socket
from typing import Callable, Iterator, Optional

import docker
from docker.errors import DockerException, NotFound
from docker.utils.socket import frames_iter
from requests.exceptions import RequestException

from dazzle.errors import LaunchError, ProvisioningError
from dazzle.models import (
    BuildImage,
    ContainerHandle,
    ContainerState,
    LogChunk,
    RunConfiguration,
    StreamType,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[dict], None]


def log_pull_progress(event: dict) -> None:
    """Default observer for image pull progress events."""
    parts = [event.get("status", ""), event.get("id", ""), event.get("progress", "")]
    message = " ".join(p for p in parts if p)
    if message:
        logger.info(message)


class LogChannel:
    """Follow-mode attachment to a container's combined output.

    Wraps the hijacked attach socket. Reads block, so ``chunks`` is meant to be
    driven from a worker thread; ``close`` may be called from any thread and
    unblocks a pending read.
    """

    def __init__(self, sock, tty: bool):
        self._sock = sock
        self.tty = tty
        self.closed = False

    def chunks(self) -> Iterator[LogChunk]:
        for stream_id, data in frames_iter(self._sock, self.tty):
            try:
                stream = StreamType(stream_id)
            except ValueError:
                logger.debug(f"Dropping {len(data)} bytes on unknown stream {stream_id}")
                continue
            yield LogChunk(stream=stream, data=data)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        raw = getattr(self._sock, "_sock", self._sock)
        try:
            raw.shutdown(socket.SHUT_RDWR)
        except (OSError, AttributeError):
            pass  # already disconnected
        try:
            self._sock.close()
        except OSError as e:
            logger.debug(f"Closing log channel: {e}")


class ContainerManager:
    """Issues the Docker calls for one build run.

    Every blocking SDK call runs in an executor so the log stream and the
    signal watcher are never held up by each other. The underlying client is
    shared and never mutated.
    """

    def __init__(
        self,
        docker_client: Optional[docker.DockerClient] = None,
        pull_policy: str = "always",
    ):
        self.docker_client = docker_client or docker.from_env()
        self.pull_policy = pull_policy
        self._provisioned: set[str] = set()

    @property
    def api(self) -> docker.APIClient:
        return self.docker_client.api

    async def ensure_image(
        self,
        image: BuildImage,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """Make sure ``image`` is available locally, pulling it if needed."""
        if image.reference in self._provisioned:
            logger.debug(f"Image {image} already provisioned")
            return

        await asyncio.get_event_loop().run_in_executor(
            None,
            lambda: self._provision(image, on_progress or log_pull_progress),
        )
        self._provisioned.add(image.reference)

    def _provision(self, image: BuildImage, on_progress: ProgressCallback) -> None:
        """Pull the image (sync, runs in executor)."""
        if self.pull_policy == "missing" and self._image_present(image):
            logger.info(f"Using local image {image}")
            return

        logger.info(f"Pulling image {image}")
        try:
            for event in self.api.pull(image.name, tag=image.tag, stream=True, decode=True):
                if "error" in event:
                    raise ProvisioningError(f"{image}: {event['error']}")
                on_progress(event)
        except (DockerException, RequestException) as e:
            raise ProvisioningError(f"{image}: {e}") from e

    def _image_present(self, image: BuildImage) -> bool:
        try:
            self.api.inspect_image(image.reference)
            return True
        except NotFound:
            return False
        except DockerException as e:
            raise ProvisioningError(f"{image}: {e}") from e

    async def launch(self, config: RunConfiguration) -> ContainerHandle:
        """Create and start a container, returning a running handle."""
        loop = asyncio.get_event_loop()
        # The executor keeps running a create or start call after the awaiting
        # task is cancelled, so a cancelled launch waits for it and then
        # removes whatever it created.
        create = loop.run_in_executor(None, lambda: self._create_container(config))
        try:
            handle = await asyncio.shield(create)
        except asyncio.CancelledError:
            await self._discard_created(create)
            raise

        start = loop.run_in_executor(None, lambda: self.api.start(handle.container_id))
        try:
            await asyncio.shield(start)
        except (DockerException, RequestException) as e:
            await self.remove_container(handle)
            raise LaunchError(f"{handle.short_id}: {e}", operation="start") from e
        except asyncio.CancelledError:
            await asyncio.wait([start])
            if not start.cancelled():
                start.exception()  # mark retrieved
            await self.remove_container(handle)
            raise

        handle.state = ContainerState.RUNNING
        logger.info(f"Started container {handle.short_id} from {config.image}")
        return handle

    async def _discard_created(self, create: asyncio.Future) -> None:
        """Remove the container of a create call whose caller was cancelled."""
        try:
            handle = await create
        except LaunchError:
            return
        await self.remove_container(handle)

    def _create_container(self, config: RunConfiguration) -> ContainerHandle:
        """Create the container (sync, runs in executor)."""
        try:
            host_config = self.api.create_host_config(binds=config.binds)
            response = self.api.create_container(
                host_config=host_config, **config.create_kwargs()
            )
        except (DockerException, RequestException) as e:
            raise LaunchError(f"{config.image}: {e}", operation="create") from e

        warnings = list(response.get("Warnings") or [])
        for warning in warnings:
            logger.warning(f"Docker: {warning}")

        return ContainerHandle(container_id=response["Id"], warnings=warnings)

    def open_log_channel(self, handle: ContainerHandle, tty: bool = True) -> LogChannel:
        """Attach to the container's stdout and stderr, replaying earlier output."""
        sock = self.api.attach_socket(
            handle.container_id,
            params={"stdout": 1, "stderr": 1, "stream": 1, "logs": 1},
        )
        return LogChannel(sock, tty=tty)

    async def wait_exit_code(self, handle: ContainerHandle, timeout: float) -> Optional[int]:
        """Exit code of the container, or None if unknown after ``timeout`` seconds."""
        try:
            result = await asyncio.get_event_loop().run_in_executor(
                None,
                lambda: self.api.wait(handle.container_id, timeout=timeout),
            )
        except (DockerException, RequestException) as e:
            logger.warning(f"Could not read exit code of {handle.short_id}: {e}")
            return None

        handle.state = ContainerState.STOPPED
        return result.get("StatusCode")

    async def remove_container(self, handle: ContainerHandle) -> bool:
        """Force-remove the container. A container that is already gone counts as removed."""
        try:
            await asyncio.get_event_loop().run_in_executor(
                None,
                lambda: self.api.remove_container(handle.container_id, force=True),
            )
            logger.info(f"Removed container {handle.short_id}")
        except NotFound:
            logger.warning(f"Container {handle.short_id} already gone")
        except (DockerException, RequestException) as e:
            logger.error(f"remove failed: {handle.short_id}: {e}")
            return False

        handle.state = ContainerState.REMOVED
        return True

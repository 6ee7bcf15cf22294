"""Runs one build: provision, launch, stream until done or interrupted, clean up."""

import asyncio
import logging
import sys
from enum import Enum
from typing import IO, Optional, Sequence

from dazzle.config import Settings
from dazzle.container_manager import ContainerManager
from dazzle.errors import DazzleError
from dazzle.log_streamer import LogStreamer
from dazzle.models import ContainerHandle, RunOutcome, RunResult
from dazzle.run_config import build_run_configuration
from dazzle.signals import TerminationWatcher
from dazzle.terminal import raw_terminal

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    PROVISIONING = "provisioning"
    LAUNCHING = "launching"
    STREAMING = "streaming"
    CLEANING_UP = "cleaning_up"
    DONE = "done"
    FAILED = "failed"


class BuildRunner:
    """Drives a single build container from image pull to removal.

    Once a container has been launched it is force-removed exactly once,
    whether the log stream ended on its own, a termination signal arrived or
    something failed in between. Pull and launch errors propagate; nothing
    after launch does.
    """

    def __init__(
        self,
        manager: ContainerManager,
        settings: Optional[Settings] = None,
        streamer: Optional[LogStreamer] = None,
        watcher: Optional[TerminationWatcher] = None,
        terminal: Optional[IO] = None,
    ):
        self.manager = manager
        self.settings = settings or Settings()
        self.streamer = streamer or LogStreamer(manager)
        self.watcher = watcher or TerminationWatcher()
        self.terminal = terminal
        self.state = RunState.PROVISIONING

    async def run(self, args: Sequence[str], workdir: str) -> RunResult:
        """Run ``args`` in a fresh build container with ``workdir`` mounted."""
        settings = self.settings
        try:
            self.state = RunState.PROVISIONING
            await self.manager.ensure_image(settings.image)

            config = build_run_configuration(
                workdir,
                args,
                settings.image,
                cache_dir=settings.cache_dir,
                workspace=settings.workspace,
            )
            self.state = RunState.LAUNCHING
            handle = await self.manager.launch(config)
        except DazzleError:
            self.state = RunState.FAILED
            raise

        result = RunResult(
            outcome=RunOutcome.COMPLETED,
            container_id=handle.container_id,
            preserve_exit_code=settings.preserve_exit_code,
        )
        try:
            self.state = RunState.STREAMING
            with raw_terminal(self.terminal or sys.stdin, enabled=settings.raw_terminal):
                result.outcome, result.signal = await self._race(handle)

            if result.outcome is RunOutcome.COMPLETED and settings.preserve_exit_code:
                result.exit_code = await self.manager.wait_exit_code(
                    handle, timeout=settings.exit_wait_seconds
                )
        finally:
            self.state = RunState.CLEANING_UP
            result.cleanup_ok = await self.manager.remove_container(handle)
            self.state = RunState.DONE

        logger.debug(
            f"Run of {handle.short_id} {result.outcome.value}, exit status {result.exit_status}"
        )
        return result

    async def _race(self, handle: ContainerHandle) -> tuple[RunOutcome, Optional[int]]:
        """Wait for the log stream to end or a termination signal, whichever is first."""
        cancel = asyncio.Event()
        log_task = asyncio.create_task(self.streamer.stream(handle, cancel))
        signal_task = asyncio.create_task(self.watcher.wait())

        pending = {log_task, signal_task}
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)

                if signal_task in done:
                    if signal_task.exception() is None:
                        return RunOutcome.INTERRUPTED, signal_task.result()
                    # Keep streaming; the build can still finish on its own.
                    logger.warning(f"Termination watcher failed: {signal_task.exception()}")

                if log_task in done:
                    if log_task.exception() is not None:
                        logger.warning(f"stream failed: {log_task.exception()}")
                    return RunOutcome.COMPLETED, None

            return RunOutcome.COMPLETED, None
        finally:
            cancel.set()
            await self._stop_tasks(log_task, signal_task)

    async def _stop_tasks(self, *tasks: asyncio.Task) -> None:
        """Cancel unfinished tasks, waiting at most the grace period for them."""
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            _, stuck = await asyncio.wait(pending, timeout=self.settings.stream_grace_seconds)
            for task in stuck:
                logger.warning(f"Abandoning task {task.get_name()} that ignored cancellation")

        for task in tasks:
            if task.done() and not task.cancelled():
                task.exception()  # mark retrieved

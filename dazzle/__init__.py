# dazzle - Bazel in a throwaway container
"""
dazzle - Run a build command in an ephemeral Docker container.

Streams the build's output to the terminal and always removes the container,
whether the build finishes or the run is interrupted.
"""

from dazzle.config import Settings
from dazzle.container_manager import ContainerManager
from dazzle.errors import DazzleError, LaunchError, ProvisioningError
from dazzle.log_streamer import LogStreamer
from dazzle.models import (
    BuildImage,
    ContainerHandle,
    ContainerState,
    LogChunk,
    RunConfiguration,
    RunOutcome,
    RunResult,
    StreamType,
)
from dazzle.orchestrator import BuildRunner, RunState
from dazzle.run_config import build_run_configuration, prepare_cache_dir
from dazzle.signals import TerminationWatcher

__all__ = [
    "BuildImage",
    "BuildRunner",
    "ContainerHandle",
    "ContainerManager",
    "ContainerState",
    "DazzleError",
    "LaunchError",
    "LogChunk",
    "LogStreamer",
    "ProvisioningError",
    "RunConfiguration",
    "RunOutcome",
    "RunResult",
    "RunState",
    "Settings",
    "StreamType",
    "TerminationWatcher",
    "build_run_configuration",
    "prepare_cache_dir",
]

__version__ = "0.1.0"

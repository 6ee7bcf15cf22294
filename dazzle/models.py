"""Data types shared by the build runner components."""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Optional

DEFAULT_IMAGE = "l.gcr.io/google/bazel:latest"
CONTAINER_LABEL = "dazzle"


@dataclass(frozen=True)
class BuildImage:
    """Reference to the image every build runs in."""
    name: str
    tag: str = "latest"

    @property
    def is_digest(self) -> bool:
        return ":" in self.tag

    @property
    def reference(self) -> str:
        if self.is_digest:
            return f"{self.name}@{self.tag}"
        return f"{self.name}:{self.tag}"

    @classmethod
    def parse(cls, reference: str) -> "BuildImage":
        """Split ``repo[:tag]`` or ``repo[:tag]@digest``.

        A registry port such as ``host:5000/repo`` is not a tag. A digest wins
        over a tag and is kept in ``tag``, which is what ``APIClient.pull``
        expects for pinned images.
        """
        if "@" in reference:
            repo, _, digest = reference.partition("@")
            return cls(name=cls.parse(repo).name, tag=digest)
        name, sep, tag = reference.rpartition(":")
        if not sep or "/" in tag:
            return cls(name=reference)
        return cls(name=name, tag=tag or "latest")

    def __str__(self) -> str:
        return self.reference


@dataclass(frozen=True)
class RunConfiguration:
    """Launch specification for one build container."""
    image: BuildImage
    host_workdir: str
    container_workdir: str
    cache_dir: str
    command: tuple[str, ...]
    tty: bool = True
    stdin_open: bool = True
    stdin_once: bool = True
    attach_stdin: bool = True
    attach_stdout: bool = True
    attach_stderr: bool = True

    @property
    def binds(self) -> list[str]:
        return [
            f"{self.host_workdir}:{self.container_workdir}",
            f"{self.cache_dir}:{self.cache_dir}",
        ]

    def create_kwargs(self) -> dict:
        """Keyword arguments for ``APIClient.create_container`` (minus host_config)."""
        return {
            "image": self.image.reference,
            "command": list(self.command),
            "working_dir": self.container_workdir,
            "tty": self.tty,
            # APIClient derives AttachStdin/Stdout/Stderr and StdinOnce from
            # stdin_open and detach
            "stdin_open": self.stdin_open,
            "detach": not (self.attach_stdout or self.attach_stderr),
            "labels": {CONTAINER_LABEL: "true"},
        }


class ContainerState(str, Enum):
    """Lifecycle of the build container."""
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"
    REMOVED = "removed"


@dataclass
class ContainerHandle:
    """Identifier of a launched container plus where it is in its lifecycle."""
    container_id: str
    state: ContainerState = ContainerState.CREATED
    warnings: list[str] = field(default_factory=list)

    @property
    def short_id(self) -> str:
        return self.container_id[:12]


class StreamType(IntEnum):
    """Stream ids used by the Docker multiplexed attach protocol."""
    STDIN = 0
    STDOUT = 1
    STDERR = 2


@dataclass(frozen=True)
class LogChunk:
    """One frame of container output."""
    stream: StreamType
    data: bytes


class RunOutcome(str, Enum):
    """Which side of the stream/signal race finished first."""
    COMPLETED = "completed"  # log stream ended on its own
    INTERRUPTED = "interrupted"  # termination signal arrived first


@dataclass
class RunResult:
    """Result of one build run."""
    outcome: RunOutcome
    container_id: str
    exit_code: Optional[int] = None
    signal: Optional[int] = None
    cleanup_ok: bool = True
    preserve_exit_code: bool = True

    @property
    def exit_status(self) -> int:
        """Process exit status for this run.

        Natural completion reports the container's exit code (0 when it could
        not be determined); an interrupt reports ``128 + signal``.
        """
        if not self.preserve_exit_code:
            return 0
        if self.outcome is RunOutcome.INTERRUPTED:
            return 128 + (self.signal or 0)
        return self.exit_code or 0

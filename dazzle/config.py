"""Environment-driven settings."""

import os
from dataclasses import dataclass

from dazzle.models import DEFAULT_IMAGE, BuildImage

DEFAULT_CACHE_DIR = "/tmp/dazzle"
DEFAULT_WORKSPACE = "/src/workspace"
PULL_POLICIES = ("always", "missing")


def _env_bool(name: str, default: str) -> bool:
    value = os.getenv(name, default).strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


def _env_float(name: str, default: str) -> float:
    value = os.getenv(name, default)
    try:
        seconds = float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}") from None
    if seconds < 0:
        raise ValueError(f"{name} must not be negative, got {value!r}")
    return seconds


@dataclass(frozen=True)
class Settings:
    image: BuildImage = BuildImage.parse(DEFAULT_IMAGE)
    cache_dir: str = DEFAULT_CACHE_DIR
    workspace: str = DEFAULT_WORKSPACE
    pull_policy: str = "always"
    raw_terminal: bool = True
    preserve_exit_code: bool = True
    stream_grace_seconds: float = 2.0
    exit_wait_seconds: float = 10.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Read ``DAZZLE_*`` variables, falling back to the defaults above."""
        pull_policy = os.getenv("DAZZLE_PULL_POLICY", "always").strip().lower()
        if pull_policy not in PULL_POLICIES:
            raise ValueError(
                f"DAZZLE_PULL_POLICY must be one of {', '.join(PULL_POLICIES)}, "
                f"got {pull_policy!r}"
            )

        log_level = os.getenv("DAZZLE_LOG_LEVEL", "INFO").strip().upper()
        if log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"DAZZLE_LOG_LEVEL is not a log level: {log_level!r}")

        return cls(
            image=BuildImage.parse(os.getenv("DAZZLE_IMAGE", DEFAULT_IMAGE)),
            cache_dir=os.getenv("DAZZLE_CACHE_DIR", DEFAULT_CACHE_DIR),
            workspace=os.getenv("DAZZLE_WORKSPACE", DEFAULT_WORKSPACE),
            pull_policy=pull_policy,
            raw_terminal=_env_bool("DAZZLE_RAW_TERMINAL", "1"),
            preserve_exit_code=_env_bool("DAZZLE_PRESERVE_EXIT_CODE", "1"),
            stream_grace_seconds=_env_float("DAZZLE_STREAM_GRACE", "2.0"),
            exit_wait_seconds=_env_float("DAZZLE_EXIT_WAIT", "10.0"),
            log_level=log_level,
        )

"""Launch specification for the build container."""

import logging
from pathlib import Path
from typing import Sequence

from dazzle.config import DEFAULT_CACHE_DIR, DEFAULT_WORKSPACE
from dazzle.models import BuildImage, RunConfiguration

logger = logging.getLogger(__name__)


def build_run_configuration(
    workdir: str,
    args: Sequence[str],
    image: BuildImage,
    cache_dir: str = DEFAULT_CACHE_DIR,
    workspace: str = DEFAULT_WORKSPACE,
) -> RunConfiguration:
    """Build the container config for running ``args`` against ``workdir``.

    The host working directory is mounted at ``workspace`` and the cache
    directory is mounted at the same path inside the container, where Bazel is
    told to keep its output root. Arguments are passed through untouched.
    """
    command = (f"--output_user_root={cache_dir}", *args)
    return RunConfiguration(
        image=image,
        host_workdir=workdir,
        container_workdir=workspace,
        cache_dir=cache_dir,
        command=command,
    )


def prepare_cache_dir(path: str = DEFAULT_CACHE_DIR) -> Path:
    """Create the host cache directory so it can be bind-mounted."""
    cache_dir = Path(path)
    cache_dir.mkdir(parents=True, exist_ok=True)
    logger.debug(f"Cache directory ready at {cache_dir}")
    return cache_dir

"""Command-line entry point: ``dazzle <build args>``.

Every argument is handed to the build tool in the container unchanged.
Configuration comes from ``DAZZLE_*`` environment variables.
"""

import asyncio
import logging
import os
import sys
from typing import Optional, Sequence

from docker.errors import DockerException

from dazzle.config import Settings
from dazzle.container_manager import ContainerManager
from dazzle.errors import DazzleError
from dazzle.orchestrator import BuildRunner
from dazzle.run_config import prepare_cache_dir

logger = logging.getLogger("dazzle")

EXIT_FAILURE = 1
EXIT_USAGE = 2


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)

    try:
        settings = Settings.from_env()
    except ValueError as e:
        logging.basicConfig(level=logging.INFO, stream=sys.stderr)
        logger.error(f"Invalid configuration: {e}")
        return EXIT_USAGE

    logging.basicConfig(
        level=settings.log_level,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        prepare_cache_dir(settings.cache_dir)
    except OSError as e:
        logger.error(f"Cannot create cache directory {settings.cache_dir}: {e}")
        return EXIT_FAILURE

    try:
        manager = ContainerManager(pull_policy=settings.pull_policy)
    except DockerException as e:
        logger.error(f"Cannot connect to Docker: {e}")
        return EXIT_FAILURE

    runner = BuildRunner(manager, settings)
    try:
        result = asyncio.run(runner.run(args, os.getcwd()))
    except DazzleError as e:
        logger.error(str(e))
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130
    finally:
        manager.docker_client.close()

    return result.exit_status


if __name__ == "__main__":
    sys.exit(main())

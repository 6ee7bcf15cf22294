"""Errors raised before a build container is running."""


class DazzleError(Exception):
    """Base error; ``operation`` names the step that failed."""

    operation = "run"

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message)
        if operation is not None:
            self.operation = operation

    def __str__(self) -> str:
        return f"{self.operation} failed: {super().__str__()}"


class ProvisioningError(DazzleError):
    """Pulling the build image failed."""

    operation = "pull"


class LaunchError(DazzleError):
    """Creating or starting the build container failed."""

    operation = "create"

import signal

import pytest

from dazzle.errors import LaunchError, ProvisioningError
from dazzle.models import BuildImage, ContainerHandle, RunOutcome, RunResult


@pytest.mark.parametrize(
    "reference,name,tag",
    [
        ("l.gcr.io/google/bazel:latest", "l.gcr.io/google/bazel", "latest"),
        ("ubuntu", "ubuntu", "latest"),
        ("ubuntu:22.04", "ubuntu", "22.04"),
        ("localhost:5000/bazel", "localhost:5000/bazel", "latest"),
        ("localhost:5000/bazel:6.4", "localhost:5000/bazel", "6.4"),
        ("bazel@sha256:abc123", "bazel", "sha256:abc123"),
        ("gcr.io/bazel-public/bazel:7.1.0@sha256:abc123", "gcr.io/bazel-public/bazel", "sha256:abc123"),
        ("localhost:5000/bazel@sha256:abc123", "localhost:5000/bazel", "sha256:abc123"),
    ],
)
def test_build_image_parse(reference, name, tag):
    image = BuildImage.parse(reference)
    assert (image.name, image.tag) == (name, tag)


def test_build_image_reference():
    assert str(BuildImage("bazel", "7")) == "bazel:7"


def test_digest_reference_uses_at_sign():
    image = BuildImage.parse("gcr.io/bazel-public/bazel:7.1.0@sha256:abc123")

    assert image.is_digest
    assert image.reference == "gcr.io/bazel-public/bazel@sha256:abc123"


def test_handle_short_id():
    assert ContainerHandle("0123456789abcdef").short_id == "0123456789ab"


class TestExitStatus:
    def test_completed_reports_container_exit_code(self):
        result = RunResult(RunOutcome.COMPLETED, "c", exit_code=3)
        assert result.exit_status == 3

    def test_completed_unknown_exit_code_is_success(self):
        assert RunResult(RunOutcome.COMPLETED, "c").exit_status == 0

    def test_interrupted_reports_signal(self):
        result = RunResult(RunOutcome.INTERRUPTED, "c", signal=signal.SIGINT)
        assert result.exit_status == 130

    def test_cleanup_failure_does_not_change_status(self):
        result = RunResult(RunOutcome.COMPLETED, "c", exit_code=0, cleanup_ok=False)
        assert result.exit_status == 0

    def test_reference_behaviour_when_not_preserving(self):
        interrupted = RunResult(
            RunOutcome.INTERRUPTED, "c", signal=signal.SIGTERM, preserve_exit_code=False
        )
        failed = RunResult(RunOutcome.COMPLETED, "c", exit_code=1, preserve_exit_code=False)
        assert interrupted.exit_status == 0
        assert failed.exit_status == 0


def test_errors_name_their_operation():
    assert str(ProvisioningError("bazel:latest: not found")) == "pull failed: bazel:latest: not found"
    assert str(LaunchError("boom")) == "create failed: boom"
    assert str(LaunchError("boom", operation="start")) == "start failed: boom"

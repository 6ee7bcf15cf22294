from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from docker.errors import DockerException

from dazzle import cli
from dazzle.errors import ProvisioningError
from dazzle.models import RunOutcome, RunResult


@pytest.fixture(autouse=True)
def env(monkeypatch, tmp_path):
    monkeypatch.setenv("DAZZLE_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.delenv("DAZZLE_PULL_POLICY", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def runner():
    runner = MagicMock()
    runner.run = AsyncMock(
        return_value=RunResult(RunOutcome.COMPLETED, "abc", exit_code=0)
    )
    with patch("dazzle.cli.BuildRunner", return_value=runner) as runner_cls, \
            patch("dazzle.cli.ContainerManager") as manager_cls:
        runner.runner_cls = runner_cls
        runner.manager_cls = manager_cls
        yield runner


def test_forwards_arguments_verbatim(runner, env):
    assert cli.main(["build", "--help", "//foo:bar"]) == 0

    runner.run.assert_awaited_once_with(["build", "--help", "//foo:bar"], str(env))
    assert (env / "cache").is_dir()


def test_exit_status_follows_run_result(runner):
    runner.run.return_value = RunResult(RunOutcome.INTERRUPTED, "abc", signal=15)

    assert cli.main(["test", "//..."]) == 143


def test_pull_policy_reaches_manager(runner, monkeypatch):
    monkeypatch.setenv("DAZZLE_PULL_POLICY", "missing")

    cli.main(["build"])

    runner.manager_cls.assert_called_once_with(pull_policy="missing")
    runner.manager_cls.return_value.docker_client.close.assert_called_once()


def test_pre_launch_failure_exits_1(runner, caplog):
    runner.run.side_effect = ProvisioningError("bazel:latest: manifest unknown")

    assert cli.main(["build"]) == 1
    assert "pull failed: bazel:latest: manifest unknown" in caplog.text


def test_docker_unavailable_exits_1(runner, caplog):
    runner.manager_cls.side_effect = DockerException("Error while fetching server API version")

    assert cli.main(["build"]) == 1
    assert "Cannot connect to Docker" in caplog.text
    runner.run.assert_not_called()


def test_invalid_configuration_exits_2(runner, monkeypatch, caplog):
    monkeypatch.setenv("DAZZLE_PULL_POLICY", "sometimes")

    assert cli.main(["build"]) == 2
    assert "DAZZLE_PULL_POLICY" in caplog.text
    runner.manager_cls.assert_not_called()


def test_interrupt_outside_the_race_exits_130(runner, caplog):
    runner.run.side_effect = KeyboardInterrupt

    assert cli.main(["build"]) == 130
    runner.manager_cls.return_value.docker_client.close.assert_called_once()

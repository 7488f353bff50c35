"""
CLI Tests
=========
Boundary behaviour of ``localci``: option validation, fatal errors and the
exit code contract. Resolution, Docker and the orchestrator are mocked.
"""
from contextlib import contextmanager
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from localci.cli import main
from localci.core.errors import InvalidMountError, ReferenceNotFoundError, ToolingUnavailableError


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("localci.cli.setup_logging"):
        yield


@pytest.fixture
def mocks():
    context = MagicMock()

    @contextmanager
    def _resolve():
        yield context

    with patch("localci.cli.ensure_git") as ensure_git, \
         patch("localci.cli.docker_client.connect") as connect, \
         patch("localci.cli.docker_client.ensure_docker_cli") as ensure_docker_cli, \
         patch("localci.cli.RefResolver") as resolver_cls, \
         patch("localci.cli.Orchestrator") as orchestrator_cls:
        resolver_cls.return_value.resolve.side_effect = _resolve
        orchestrator_cls.return_value.execute.return_value = 0
        yield {
            "ensure_git": ensure_git,
            "connect": connect,
            "ensure_docker_cli": ensure_docker_cli,
            "resolver": resolver_cls,
            "orchestrator": orchestrator_cls,
            "context": context,
        }


class TestExitCodes:

    def test_all_passed(self, runner, mocks):
        result = runner.invoke(main, [])
        assert result.exit_code == 0
        mocks["orchestrator"].return_value.execute.assert_called_once_with(mocks["context"])

    def test_exit_code_is_failure_count(self, runner, mocks):
        mocks["orchestrator"].return_value.execute.return_value = 2
        assert runner.invoke(main, []).exit_code == 2

    def test_reference_not_found(self, runner, mocks):
        mocks["resolver"].return_value.resolve.side_effect = ReferenceNotFoundError(
            "Reference 'nope' is not known to the local repository. localci never fetches; run 'git fetch' first."
        )
        result = runner.invoke(main, ["nope"])
        assert result.exit_code == ReferenceNotFoundError.exit_code
        assert "git fetch" in result.output
        mocks["orchestrator"].assert_not_called()

    def test_docker_unavailable(self, runner, mocks):
        mocks["connect"].side_effect = ToolingUnavailableError("Cannot reach the Docker daemon")
        result = runner.invoke(main, [])
        assert result.exit_code == ToolingUnavailableError.exit_code
        mocks["resolver"].assert_not_called()

    def test_postmortem_requires_docker_cli(self, runner, mocks):
        mocks["ensure_docker_cli"].side_effect = ToolingUnavailableError("docker executable not found on PATH")
        result = runner.invoke(main, ["--postmortem"])
        assert result.exit_code == ToolingUnavailableError.exit_code
        assert "docker executable" in result.output
        mocks["connect"].assert_not_called()
        mocks["resolver"].assert_not_called()

    def test_docker_cli_not_checked_without_postmortem(self, runner, mocks):
        assert runner.invoke(main, []).exit_code == 0
        mocks["ensure_docker_cli"].assert_not_called()

    def test_interrupted(self, runner, mocks):
        mocks["orchestrator"].return_value.execute.side_effect = KeyboardInterrupt
        result = runner.invoke(main, [])
        assert result.exit_code == 130


class TestOptions:

    def test_invalid_mount_rejected_before_anything_runs(self, runner, mocks):
        result = runner.invoke(main, ["--mount", "/only-host-path"])
        assert result.exit_code == InvalidMountError.exit_code
        assert "/only-host-path" in result.output
        mocks["ensure_git"].assert_not_called()
        mocks["resolver"].assert_not_called()

    def test_options_reach_run_config(self, runner, mocks):
        result = runner.invoke(main, [
            "v1.2", "--postmortem", "-m", "/a:/a,/b:/b:ro", "--mount", "/c:/c",
            "--only", "alpine", "--rm-images",
        ])
        assert result.exit_code == 0

        config = mocks["resolver"].call_args.args[0]
        assert config.reference == "v1.2"
        assert config.post_mortem is True
        assert [m.container_path for m in config.mounts] == ["/a", "/b", "/c"]
        assert config.only == ("alpine",)
        assert config.remove_images is True
        assert mocks["orchestrator"].call_args.args[0] is config

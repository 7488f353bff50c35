from unittest.mock import MagicMock, patch

import pytest
from docker.errors import DockerException

from localci.core.errors import ConfigError, ToolingUnavailableError
from localci.executor import docker_client


@patch("localci.executor.docker_client.docker")
def test_connect_pings_daemon(mock_docker):
    client = MagicMock()
    mock_docker.from_env.return_value = client
    assert docker_client.connect() is client
    client.ping.assert_called_once()


@patch("localci.executor.docker_client.docker")
def test_unreachable_daemon(mock_docker):
    mock_docker.from_env.side_effect = DockerException("Error while fetching server API version")
    with pytest.raises(ToolingUnavailableError, match="Docker daemon"):
        docker_client.connect()


@patch("localci.executor.docker_client.docker")
def test_unreachable_daemon_is_config_error(mock_docker):
    mock_docker.from_env.return_value.ping.side_effect = DockerException("refused")
    with pytest.raises(ConfigError):
        docker_client.connect()


@patch("localci.executor.docker_client.shutil.which", return_value="/usr/bin/docker")
def test_docker_cli_found(mock_which):
    assert docker_client.ensure_docker_cli() == "/usr/bin/docker"
    mock_which.assert_called_once_with("docker")


@patch("localci.executor.docker_client.shutil.which", return_value=None)
def test_docker_cli_missing(mock_which):
    with pytest.raises(ToolingUnavailableError, match="--postmortem"):
        docker_client.ensure_docker_cli()

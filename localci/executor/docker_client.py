"""
Docker Client
Connects to the container daemon configured by the environment
(DOCKER_HOST, DOCKER_TLS_VERIFY, DOCKER_CERT_PATH). Redirecting those
variables at a remote host is all it takes to build and run remotely;
nothing else in localci knows or cares where the daemon lives.
"""
import logging
import shutil

import docker
from docker.errors import DockerException

from localci.core.errors import ToolingUnavailableError

logger = logging.getLogger(__name__)


def connect():
    """Return a connected ``docker.DockerClient`` or raise ToolingUnavailableError."""
    try:
        client = docker.from_env()
        client.ping()
    except DockerException as e:
        raise ToolingUnavailableError(f"Cannot reach the Docker daemon: {e}")
    logger.debug("Connected to Docker daemon at %s", client.api.base_url)
    return client


def ensure_docker_cli() -> str:
    """Return the docker CLI path or raise ToolingUnavailableError (post-mortem shells need it)."""
    cli = shutil.which("docker")
    if cli is None:
        raise ToolingUnavailableError("docker executable not found on PATH; it is required for --postmortem")
    return cli

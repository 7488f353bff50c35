"""
Configuration
=============
Loads environment variables from a .env file using python-dotenv and builds
the immutable ``RunConfig`` that every component receives explicitly.
Components never read the environment themselves.

Environment Variables:
    LOCALCI_SCRIPT_NAME: CI script expected at the context root (default: ci.sh)
    LOCALCI_DOCKERFILE_PREFIX: job descriptor filename prefix (default: Dockerfile.ci)
    LOCALCI_CLONE_DEPTH: history depth for remote clones (default: 50)
    LOCALCI_BASE_IMAGE: base image of the synthesized default job (default: debian:stable-slim)
    LOCALCI_POSTMORTEM_SHELL: shell started in post-mortem sessions (default: /bin/bash)
    LOCALCI_LOG_DIR: write a run log there as well as to stderr (default: unset)
    LOCALCI_TMPDIR: parent for isolated build contexts (default: system temp dir)

Clone Depth:
    Remote references with a commit fragment are checked out from a shallow
    clone. A commit older than LOCALCI_CLONE_DEPTH revisions on every branch
    is not present in the clone and the checkout fails.
"""
import getpass
import os
from pathlib import Path
from typing import Iterable, Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from localci.core.constants import (
    DEFAULT_BASE_IMAGE,
    DEFAULT_CLONE_DEPTH,
    DEFAULT_POSTMORTEM_SHELL,
    DEFAULT_SCRIPT_NAME,
    DOCKERFILE_PREFIX as _DOCKERFILE_PREFIX,
)
from localci.core.errors import ConfigError
from localci.models.mount import Mount
from localci.parser.mount_parser import parse_mounts

load_dotenv()

SCRIPT_NAME = os.getenv("LOCALCI_SCRIPT_NAME", DEFAULT_SCRIPT_NAME)
DOCKERFILE_PREFIX = os.getenv("LOCALCI_DOCKERFILE_PREFIX", _DOCKERFILE_PREFIX)
# validated (and converted) when a RunConfig is built
CLONE_DEPTH = os.getenv("LOCALCI_CLONE_DEPTH", str(DEFAULT_CLONE_DEPTH))
BASE_IMAGE = os.getenv("LOCALCI_BASE_IMAGE", DEFAULT_BASE_IMAGE)
POSTMORTEM_SHELL = os.getenv("LOCALCI_POSTMORTEM_SHELL", DEFAULT_POSTMORTEM_SHELL)
LOG_DIR = os.getenv("LOCALCI_LOG_DIR") or None
TMP_ROOT = os.getenv("LOCALCI_TMPDIR") or None


class OperatorIdentity(BaseModel):
    """Who is driving the run; used for image naming and file ownership."""
    model_config = ConfigDict(frozen=True)

    name: str
    uid: int
    gid: int

    @classmethod
    def current(cls) -> "OperatorIdentity":
        return cls(name=getpass.getuser(), uid=os.getuid(), gid=os.getgid())

    @property
    def user_spec(self) -> str:
        return f"{self.uid}:{self.gid}"


class RunConfig(BaseModel):
    """
    Everything one invocation needs, constructed once at the CLI boundary.

    Fields
    ------
    workdir: Path
        The operator's working tree; the build context when no reference
        is given and the repository local references are resolved against.
    reference: str | None
        Raw revision reference as typed by the operator.
    override_script: Path | None
        Script replacing the default entry command of every job.
    mounts: tuple[Mount, ...]
        Validated bind mounts for job containers.
    post_mortem: bool
        Open a privileged shell in a snapshot of every failed job.
    only: tuple[str, ...]
        Restrict the run to descriptors with these suffixes.
    results_path: Path | None
        Write a JSON report of the run there.
    remove_images: bool
        Also remove job images at teardown (disables layer-cache reuse).
    """
    model_config = ConfigDict(frozen=True, validate_default=True)

    workdir: Path
    operator: OperatorIdentity
    reference: Optional[str] = None
    override_script: Optional[Path] = None
    mounts: Tuple[Mount, ...] = ()
    post_mortem: bool = False
    only: Tuple[str, ...] = ()
    results_path: Optional[Path] = None
    remove_images: bool = False

    script_name: str = SCRIPT_NAME
    dockerfile_prefix: str = DOCKERFILE_PREFIX
    clone_depth: int = Field(default=CLONE_DEPTH, ge=1)
    base_image: str = BASE_IMAGE
    postmortem_shell: str = POSTMORTEM_SHELL
    tmp_root: Optional[Path] = TMP_ROOT

    @classmethod
    def build(
        cls,
        workdir: Optional[Path] = None,
        mounts: Iterable[str] = (),
        override_script: Optional[Path] = None,
        operator: Optional[OperatorIdentity] = None,
        **kwargs,
    ) -> "RunConfig":
        """
        Build a RunConfig from raw option values.

        Mount strings are validated here, before anything else happens,
        so a bad ``--mount`` aborts the run before any clone or build.
        Invalid settings (including LOCALCI_* values) raise ConfigError.
        """
        root = Path(workdir or Path.cwd()).resolve()
        script = Path(override_script).resolve() if override_script else None
        parsed_mounts = tuple(parse_mounts(mounts))
        try:
            return cls(
                workdir=root,
                operator=operator or OperatorIdentity.current(),
                mounts=parsed_mounts,
                override_script=script,
                **kwargs,
            )
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}")

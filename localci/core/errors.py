"""
Errors
======
Exception hierarchy for localci.

Context-resolution errors (config, reference, clone, checkout) are fatal for
the whole run: nothing downstream can proceed without a build context. The
CLI catches ``LocalCIError`` at the boundary and exits with ``exit_code``.

Build and instance-creation errors are local to one job descriptor. The
orchestrator captures them as a failed ``RunResult`` and moves on to the
next descriptor; they only reach the CLI if raised outside that loop.

A job exiting non-zero is NOT an error. It is a normal, reported outcome.

Fatal exit codes start at 100 so they never collide with the
failed-job count returned on a normal run.
"""


class LocalCIError(Exception):
    """Base exception for localci."""
    exit_code = 100


class ConfigError(LocalCIError):
    """Required script missing, invalid option value or bad environment."""
    exit_code = 101


class InvalidMountError(ConfigError):
    """A bind-mount specification does not match host:container[:ro|rw]."""
    exit_code = 102


class ToolingUnavailableError(ConfigError):
    """git is not installed or the container daemon cannot be reached."""
    exit_code = 103


class ReferenceNotFoundError(LocalCIError):
    """
    A local reference cannot be resolved without a network fetch.

    localci never fetches implicitly; the operator is told to fetch first.
    """
    exit_code = 104


class ReferenceScriptMissingError(LocalCIError):
    """The CI script does not exist in the tree of the requested reference."""
    exit_code = 105


class CloneError(LocalCIError):
    """git clone failed (network, authentication, unknown repository)."""
    exit_code = 106


class CheckoutError(LocalCIError):
    """
    git checkout or submodule initialization failed.

    Typical causes: unknown branch, a commit deeper than the shallow clone
    depth, or a submodule that would need a network fetch.
    """
    exit_code = 107


class BuildError(LocalCIError):
    """The container image for one job descriptor failed to build."""
    exit_code = 108


class InstanceCreateError(LocalCIError):
    """The job container could not be created from a built image."""
    exit_code = 109

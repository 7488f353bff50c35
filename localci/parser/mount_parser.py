"""
Mount Parser
============
Validates bind-mount options before any build step runs.

Accepted syntax (per entry):
    <host-path>:<container-path>[:ro|rw]

Entries may be given as a repeated option or as a comma-separated list in a
single option value. A literal ``:`` or ``,`` inside a path is written
``\\:`` / ``\\,``. Anything else raises ``InvalidMountError``.
"""
import os
import re
from typing import Iterable, List

from localci.core.errors import InvalidMountError
from localci.models.mount import Mount

# host ':' container [':' mode] where host/container may contain escapes
_SEGMENT = r"(?:[^:\\]|\\.)+"
_MOUNT_RE = re.compile(
    rf"^(?P<host>{_SEGMENT}):(?P<container>{_SEGMENT})(?::(?P<mode>ro|rw))?$"
)
_UNESCAPED_COMMA_RE = re.compile(r"(?<!\\),")
_ESCAPE_RE = re.compile(r"\\(.)")


def _unescape(value: str) -> str:
    return _ESCAPE_RE.sub(r"\1", value)


def split_mount_option(value: str) -> List[str]:
    """Split one option value on unescaped commas, dropping empty items."""
    return [item.strip() for item in _UNESCAPED_COMMA_RE.split(value) if item.strip()]


def parse_mount(entry: str) -> Mount:
    """Parse a single ``host:container[:mode]`` entry."""
    match = _MOUNT_RE.match(entry)
    if not match:
        raise InvalidMountError(
            f"Invalid mount '{entry}': expected <host-path>:<container-path>[:ro|rw]"
        )

    host = _unescape(match.group("host"))
    container = _unescape(match.group("container"))
    if not container.startswith("/"):
        raise InvalidMountError(
            f"Invalid mount '{entry}': container path '{container}' must be absolute"
        )

    return Mount(
        host_path=os.path.abspath(os.path.expanduser(host)),
        container_path=container,
        mode=match.group("mode") or "rw",
    )


def parse_mounts(values: Iterable[str]) -> List[Mount]:
    """Parse every mount option value, in the order given."""
    mounts: List[Mount] = []
    for value in values or ():
        for entry in split_mount_option(value):
            mounts.append(parse_mount(entry))
    return mounts

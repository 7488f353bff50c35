"""
Reference Parser
================
Classifies an operator-supplied revision string into a ``LocalReference``
or a ``RemoteReference``. Classification is purely structural:

    - ``<scheme>://...`` with scheme http, https, git, ssh or file → remote
    - ``user@host:path`` (SCP-style)                              → remote
    - anything else (branch, tag, commit, ``origin/main``)       → local

Remote forms may carry ``#<branch-or-commit>``; the fragment is split off
here and never re-inspected downstream.
"""
import re
from typing import Optional

from localci.core.constants import REMOTE_SCHEMES
from localci.core.errors import ConfigError
from localci.models.reference import LocalReference, Reference, RemoteReference

_SCHEME_RE = re.compile(r"^(?P<scheme>[A-Za-z][A-Za-z0-9+.\-]*)://")
_SCP_RE = re.compile(r"^[^@/\s:]+@[^@/\s:]+:[^\s]+$")


def is_remote(value: str) -> bool:
    base = value.partition("#")[0]
    match = _SCHEME_RE.match(base)
    if match:
        return True
    return bool(_SCP_RE.match(base))


def parse_reference(raw: Optional[str]) -> Optional[Reference]:
    """
    Classify ``raw``. Returns None when no reference was given.

    Raises
    ------
    ConfigError
        For blank references and unsupported URL schemes.
    """
    if raw is None:
        return None

    value = raw.strip()
    if not value:
        raise ConfigError("Empty revision reference")

    if not is_remote(value):
        return LocalReference(raw=value)

    base_url, _, fragment = value.partition("#")
    match = _SCHEME_RE.match(base_url)
    if match and match.group("scheme").lower() not in REMOTE_SCHEMES:
        raise ConfigError(
            f"Unsupported URL scheme '{match.group('scheme')}' in '{value}' "
            f"(supported: {', '.join(REMOTE_SCHEMES)})"
        )

    return RemoteReference(raw=value, base_url=base_url, fragment=fragment or None)

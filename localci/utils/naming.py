"""
Naming Utilities
================
Everything that turns references and descriptors into names: short tags,
naming prefixes and container-registry-safe image references.

Deterministic: the same reference, directory and suffix always produce the
same names, which is what lets repeated runs reuse cached image layers.
"""
import re
from typing import Optional
from urllib.parse import urlparse

from localci.core.constants import (
    DEFAULT_IMAGE_TAG,
    MAX_TAG_LENGTH,
    NAME_FILLER,
    SHORT_TAG_LENGTH,
)

_COMMIT_LIKE_RE = re.compile(r"^[0-9a-fA-F]{6,40}$")
_SCP_USER_RE = re.compile(r"^[^@/:]+@")
_REPOSITORY_INVALID_RE = re.compile(r"[^a-z0-9._/-]+")
_TAG_INVALID_RE = re.compile(r"[^A-Za-z0-9_.-]+")


def is_commit_like(token: str) -> bool:
    """True for 6–40 hexadecimal characters."""
    return bool(_COMMIT_LIKE_RE.match(token or ""))


def short_tag_for(token: Optional[str]) -> Optional[str]:
    """
    Derive the short tag of a revision token.

    Commit-like tokens are truncated to 6 characters since image tags are
    length-bounded; anything else (branch, tag name) is returned unchanged.
    """
    if not token:
        return None
    if is_commit_like(token):
        return token[:SHORT_TAG_LENGTH]
    return token


def with_short_tag(prefix: str, short_tag: Optional[str]) -> str:
    if short_tag:
        return f"{prefix}:{short_tag}"
    return prefix


def remote_prefix(base_url: str) -> str:
    """
    Naming prefix for a remote repository.

    ``https://github.com/org/repo.git`` → ``github.com-org-repo``
    ``git@github.com:org/repo``         → ``github.com-org-repo``
    """
    value = base_url.strip()
    if "://" in value:
        parsed = urlparse(value)
        value = (parsed.netloc.rpartition("@")[2] + parsed.path)
    else:
        value = _SCP_USER_RE.sub("", value)
    value = value.strip("/")
    if value.endswith(".git"):
        value = value[:-4]
    value = value.replace(":", "/")
    parts = [p for p in value.split("/") if p]
    return NAME_FILLER.join(parts)


def sanitize_repository(name: str) -> str:
    """Lowercase and strip characters not allowed in an image repository."""
    cleaned = _REPOSITORY_INVALID_RE.sub(NAME_FILLER, name.lower())
    cleaned = re.sub(r"-{2,}", NAME_FILLER, cleaned)
    parts = [p.strip("._-") for p in cleaned.split("/")]
    return "/".join(p for p in parts if p) or "localci"


def sanitize_tag(tag: Optional[str]) -> str:
    """Make ``tag`` a valid image tag (``[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}``)."""
    if not tag:
        return DEFAULT_IMAGE_TAG
    cleaned = _TAG_INVALID_RE.sub(NAME_FILLER, tag).lstrip(".-")
    return cleaned[:MAX_TAG_LENGTH] or DEFAULT_IMAGE_TAG

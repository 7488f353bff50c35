"""
Reference Model
===============
Tagged union describing what revision the operator asked to build.

    LocalReference: branch, tag, commit or remote-tracking name already
                     known to the local repository's ref database.
    RemoteReference: network-addressable repository URL (or SCP-style
                     ``user@host:path``), optionally with a ``#fragment``
                     naming a branch or commit.

A reference is classified exactly once by ``parse_reference`` and is frozen
afterwards; downstream code dispatches on the type, never on the raw string.
"""
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict


class LocalReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["local"] = "local"
    raw: str

    @property
    def revision(self) -> str:
        return self.raw


class RemoteReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["remote"] = "remote"
    raw: str
    base_url: str
    fragment: Optional[str] = None

    @property
    def revision(self) -> Optional[str]:
        return self.fragment


Reference = Union[LocalReference, RemoteReference]

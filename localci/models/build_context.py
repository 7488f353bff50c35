"""
Build Context Model
===================
The single directory every job image of a run is built from.

Fields:
    path: directory handed to the image build
    prefix: human-readable naming prefix, ``<name>[:<short tag>]``
    short_tag: 6-char commit abbreviation or the raw reference
    script_name: context-relative path of the script the jobs run
    script_overridden: True when ``script_name`` came from ``--script``
    is_temporary: True for isolated clones (removed at end of run);
        False for the operator's working tree (never removed)
    reference: the classified reference, None for the working tree
"""
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict

from localci.models.reference import Reference


class BuildContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: Path
    prefix: str
    short_tag: Optional[str] = None
    script_name: str
    script_overridden: bool = False
    is_temporary: bool = False
    reference: Optional[Reference] = None

    @property
    def prefix_name(self) -> str:
        """Prefix without its tag part."""
        return self.prefix.partition(":")[0]

    @property
    def prefix_tag(self) -> Optional[str]:
        tag = self.prefix.partition(":")[2]
        return tag or None

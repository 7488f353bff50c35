"""
Submodule Synchronizer
======================
Makes nested repositories available in an isolated clone without touching
the network.

A clone of the local working tree has the working tree's *path* as its
origin, so a plain ``git submodule update --init`` in the clone would look
up each submodule's upstream URL and download it. Instead we seed the
clone's metadata store with what the working tree already has:

    packed-refs, refs/: the ref database, so every name resolvable in
                        the working tree resolves identically here
    modules/: already-initialized submodule repositories, objects included
    config: remote and submodule configuration

and then initialize submodules with fetching disabled.
"""
import logging
import shutil
from pathlib import Path
from typing import List

from localci.services import git_service

logger = logging.getLogger(__name__)

METADATA_ENTRIES = ("packed-refs", "refs", "modules", "config")


class SubmoduleSynchronizer:
    """Seeds clone metadata and runs offline or online submodule init."""

    def seed_metadata(self, source_git_dir: Path, clone_git_dir: Path) -> List[str]:
        """
        Copy the ref database, submodule repositories and configuration
        from ``source_git_dir`` into ``clone_git_dir`` verbatim.

        Returns the names of the entries that were copied.
        """
        copied: List[str] = []
        for entry in METADATA_ENTRIES:
            src = source_git_dir / entry
            dst = clone_git_dir / entry
            if src.is_dir():
                shutil.copytree(src, dst, symlinks=True, dirs_exist_ok=True)
            elif src.is_file():
                shutil.copy2(src, dst)
            else:
                continue
            copied.append(entry)

        logger.debug("Seeded %s from %s", ", ".join(copied) or "nothing", source_git_dir)
        return copied

    def initialize(self, repo: Path, offline: bool) -> bool:
        """
        Recursively initialize submodules of ``repo``.

        Returns False when the repository declares no submodules.
        """
        if not (repo / ".gitmodules").is_file():
            logger.debug("No .gitmodules in %s, skipping submodule init", repo)
            return False

        logger.info("Initializing submodules in %s (%s)", repo, "offline" if offline else "online")
        git_service.update_submodules(repo, no_fetch=offline)
        return True

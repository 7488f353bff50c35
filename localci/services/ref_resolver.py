"""
Ref Resolver
============
Turns the operator's optional revision reference into the single build
context of a run.

    no reference      → the working tree itself, prefix ``local-<dir>:dirty``
    LocalReference    → offline clone of the working tree at that revision
    RemoteReference   → shallow clone of the URL, optionally at ``#fragment``

Isolated clones live in a temporary directory that is acquired inside
``resolve()`` and removed when the ``with`` block ends, whatever the exit
path (success, exception, KeyboardInterrupt). The working tree is never
copied, modified or removed.
"""
import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Tuple

from localci.core.config import RunConfig
from localci.core.constants import DIRTY_TAG, TOOL_NAME
from localci.core.errors import ConfigError, ReferenceNotFoundError, ReferenceScriptMissingError
from localci.models.build_context import BuildContext
from localci.models.reference import LocalReference, Reference, RemoteReference
from localci.parser.reference_parser import parse_reference
from localci.services import git_service
from localci.services.submodule_sync import SubmoduleSynchronizer
from localci.utils.naming import remote_prefix, short_tag_for, with_short_tag

logger = logging.getLogger(__name__)


class RefResolver:
    """Resolves ``config.reference`` into a ``BuildContext``."""

    def __init__(self, config: RunConfig, submodules: Optional[SubmoduleSynchronizer] = None) -> None:
        self.config = config
        self.submodules = submodules or SubmoduleSynchronizer()
        # Classified once; never re-inspected.
        self.reference: Optional[Reference] = parse_reference(config.reference)

    @contextmanager
    def resolve(self) -> Iterator[BuildContext]:
        """Yield the build context; isolated directories are removed on exit."""
        if self.reference is None:
            yield self._resolve_working_tree()
            return

        root = commit = None
        if isinstance(self.reference, LocalReference):
            root, commit = self._verify_local(self.reference)

        workspace = self._acquire_workspace()
        try:
            if isinstance(self.reference, RemoteReference):
                context = self._resolve_remote(self.reference, workspace)
            else:
                context = self._resolve_local(self.reference, root, commit, workspace)
            logger.info("Build context ready | prefix=%s | path=%s", context.prefix, context.path)
            yield context
        finally:
            self._release_workspace(workspace)

    # ------------------------------------------------------------------
    # Scoped temporary directory
    # ------------------------------------------------------------------
    def _acquire_workspace(self) -> Path:
        parent = self.config.tmp_root
        if parent is not None:
            Path(parent).mkdir(parents=True, exist_ok=True)
        workspace = Path(tempfile.mkdtemp(prefix=f"{TOOL_NAME}-", dir=parent))
        logger.debug("Acquired build context directory %s", workspace)
        return workspace

    def _release_workspace(self, workspace: Path) -> None:
        shutil.rmtree(workspace, ignore_errors=True)
        if workspace.exists():
            logger.warning("Could not fully remove build context directory %s", workspace)
        else:
            logger.debug("Removed build context directory %s", workspace)

    # ------------------------------------------------------------------
    # No reference: the working tree as-is
    # ------------------------------------------------------------------
    def _resolve_working_tree(self) -> BuildContext:
        root = self.config.workdir
        override = self.config.override_script

        if override is not None:
            if not override.is_file():
                raise ConfigError(f"Override script {override} does not exist")
            try:
                script_name = override.relative_to(root).as_posix()
            except ValueError:
                raise ConfigError(
                    f"Override script {override} must be inside {root} when no "
                    "reference is given (the working tree is built as-is)"
                )
        else:
            script_name = self.config.script_name
            if not (root / script_name).is_file():
                raise ConfigError(
                    f"CI script '{script_name}' not found in {root}; "
                    "add it or pass --script"
                )

        prefix = with_short_tag(f"local-{root.name}", DIRTY_TAG)
        logger.info("Building the working tree %s as %s", root, prefix)
        return BuildContext(
            path=root,
            prefix=prefix,
            short_tag=DIRTY_TAG,
            script_name=script_name,
            script_overridden=override is not None,
            is_temporary=False,
        )

    # ------------------------------------------------------------------
    # Local reference: offline clone of the working tree
    # ------------------------------------------------------------------
    def _verify_local(self, reference: LocalReference) -> Tuple[Path, str]:
        """Checks done before any directory is allocated or anything cloned."""
        root = git_service.repo_root(self.config.workdir)
        commit = git_service.resolve_commit(root, reference.raw)
        if commit is None:
            raise ReferenceNotFoundError(
                f"Reference '{reference.raw}' is not known to the local repository. "
                "localci never fetches; run 'git fetch' first."
            )

        override = self.config.override_script
        if override is not None:
            if not override.is_file():
                raise ConfigError(f"Override script {override} does not exist")
        elif not git_service.path_exists_at(root, commit, self.config.script_name):
            raise ReferenceScriptMissingError(
                f"CI script '{self.config.script_name}' does not exist at "
                f"'{reference.raw}' ({commit[:12]}); pass --script to supply one"
            )
        return root, commit

    def _resolve_local(
        self, reference: LocalReference, root: Path, commit: str, workspace: Path,
    ) -> BuildContext:

        git_service.clone(str(root), workspace, no_checkout=True)
        self.submodules.seed_metadata(git_service.common_git_dir(root), workspace / ".git")
        git_service.checkout(workspace, commit)

        script_name = self._install_override(workspace)
        self.submodules.initialize(workspace, offline=True)

        short_tag = short_tag_for(reference.raw)
        return BuildContext(
            path=workspace,
            prefix=with_short_tag(f"local-{root.name}", short_tag),
            short_tag=short_tag,
            script_name=script_name,
            script_overridden=self.config.override_script is not None,
            is_temporary=True,
            reference=reference,
        )

    # ------------------------------------------------------------------
    # Remote reference: shallow clone
    # ------------------------------------------------------------------
    def _resolve_remote(self, reference: RemoteReference, workspace: Path) -> BuildContext:
        depth = self.config.clone_depth

        if reference.fragment:
            git_service.clone(
                reference.base_url, workspace,
                depth=depth, no_checkout=True, all_branches=True,
            )
            git_service.checkout(workspace, reference.fragment, depth=depth)
        else:
            git_service.clone(reference.base_url, workspace, depth=depth)

        script_name = self._install_override(workspace)
        self.submodules.initialize(workspace, offline=False)

        if self.config.override_script is None and not (workspace / script_name).is_file():
            raise ReferenceScriptMissingError(
                f"CI script '{script_name}' does not exist in {reference.raw}; "
                "pass --script to supply one"
            )

        short_tag = short_tag_for(reference.fragment)
        return BuildContext(
            path=workspace,
            prefix=with_short_tag(remote_prefix(reference.base_url), short_tag),
            short_tag=short_tag,
            script_name=script_name,
            script_overridden=self.config.override_script is not None,
            is_temporary=True,
            reference=reference,
        )

    def _install_override(self, workspace: Path) -> str:
        """Copy the override script into the clone; return the script name to run."""
        override = self.config.override_script
        if override is None:
            return self.config.script_name

        if not override.is_file():
            raise ConfigError(f"Override script {override} does not exist")
        target = workspace / override.name
        if target.exists():
            logger.warning("Override script replaces %s in the build context", override.name)
        shutil.copy2(override, target)
        logger.info("Using override script %s", override.name)
        return override.name

"""
Image Builder
=============
Turns one job descriptor and the shared build context into a built image
and a created-but-not-started job container.

Lifecycle:
    1. Pick the dockerfile (original, or a copy whose final instruction
       runs the override script)
    2. Compute the deterministic image handle
    3. Build the image with the operator's UID/GID and the CI driver marker
       as build arguments
    4. Create the job container (operator UID/GID, tracing capabilities,
       caller-supplied bind mounts)

IMAGE NAMING:
    <operator>/<context prefix name>[-<descriptor suffix>]:<context prefix tag>

    The handle depends only on who runs, what was resolved and which
    descriptor is built, so an unchanged context maps to the same image
    and Docker reuses its cached layers.
"""
import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

from docker.errors import APIError, BuildError as DockerBuildError, ImageNotFound

from localci.core.config import RunConfig
from localci.core.constants import CI_DRIVER_MARKER, JOB_CAPABILITIES, LABEL_DESCRIPTOR, LABEL_ROLE
from localci.core.errors import BuildError, InstanceCreateError
from localci.executor.dockerfile import replace_entry_command
from localci.models.build_context import BuildContext
from localci.models.job import ImageHandle, JobDescriptor, JobInstance
from localci.utils.naming import sanitize_repository, sanitize_tag

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Log Excerpt Helper
# ---------------------------------------------------------------------------
_EXCERPT_TAIL_LINES = 20


def create_log_excerpt(full_log: str, tail: int = _EXCERPT_TAIL_LINES) -> str:
    """Last ``tail`` lines of a build log, with a marker if lines were dropped."""
    lines = full_log.splitlines()
    if len(lines) <= tail:
        return full_log
    omitted = len(lines) - tail
    return "\n".join([f"... ({omitted} lines omitted) ..."] + lines[-tail:])


def _build_log_text(build_log) -> str:
    chunks = []
    for entry in build_log or ():
        if isinstance(entry, dict):
            chunks.append(entry.get("stream") or entry.get("error") or "")
    return "".join(chunks)


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------
class ImageBuilder:
    """Builds job images and creates job containers for one run."""

    def __init__(self, config: RunConfig, client, scratch_dir: Path) -> None:
        self.config = config
        self.client = client
        self.scratch_dir = scratch_dir

    def image_handle(self, descriptor: JobDescriptor, context: BuildContext) -> ImageHandle:
        name = context.prefix_name
        if descriptor.suffix:
            name = f"{name}-{descriptor.suffix}"
        return ImageHandle(
            repository=sanitize_repository(f"{self.config.operator.name}/{name}"),
            tag=sanitize_tag(context.prefix_tag),
        )

    def prepare_dockerfile(self, descriptor: JobDescriptor, context: BuildContext) -> str:
        """
        Dockerfile argument for the build.

        Unmodified descriptors inside the context are passed by their
        context-relative name; anything else is passed as an absolute path
        outside the context, which the SDK sends along with the context.
        """
        if not context.script_overridden:
            if descriptor.synthesized:
                return str(descriptor.dockerfile)
            return descriptor.dockerfile.name

        original = descriptor.dockerfile.read_text(encoding="utf-8")
        target = self.scratch_dir / f"{descriptor.dockerfile.name}.override"
        target.write_text(replace_entry_command(original, context.script_name), encoding="utf-8")
        logger.debug("Entry command of %s replaced to run %s", descriptor.name, context.script_name)
        return str(target)

    def build_args(self) -> Dict[str, str]:
        operator = self.config.operator
        return {
            "UID": str(operator.uid),
            "GID": str(operator.gid),
            "CI_DRIVER": CI_DRIVER_MARKER,
        }

    def build(self, descriptor: JobDescriptor, context: BuildContext) -> Tuple[ImageHandle, JobInstance]:
        """
        Build the image for ``descriptor`` and create (not start) its job.

        Raises
        ------
        BuildError
            The image build failed.
        InstanceCreateError
            The container could not be created from the built image.
        """
        handle = self.image_handle(descriptor, context)
        dockerfile = self.prepare_dockerfile(descriptor, context)

        logger.info("Building image %s from %s", handle, descriptor.name)
        try:
            _, build_log = self.client.images.build(
                path=str(context.path),
                dockerfile=dockerfile,
                tag=str(handle),
                buildargs=self.build_args(),
                rm=True,
            )
        except DockerBuildError as e:
            excerpt = create_log_excerpt(_build_log_text(e.build_log))
            logger.error("Image build for %s failed: %s", descriptor.name, e.msg)
            raise BuildError(f"Building {descriptor.name} failed: {e.msg}\n{excerpt}".rstrip())
        except APIError as e:
            logger.error("Docker API error while building %s: %s", descriptor.name, e)
            raise BuildError(f"Building {descriptor.name} failed: {e}")

        for line in _build_log_text(build_log).splitlines():
            logger.debug("[build %s] %s", descriptor.name, line)

        container = self._create_instance(descriptor, handle)
        return handle, JobInstance(descriptor=descriptor, image=handle, container=container)

    def _create_instance(self, descriptor: JobDescriptor, handle: ImageHandle):
        # a list, not a dict keyed by host path: one host directory may be mounted twice
        volumes = [mount.as_bind() for mount in self.config.mounts]

        try:
            container = self.client.containers.create(
                image=str(handle),
                user=self.config.operator.user_spec,
                cap_add=list(JOB_CAPABILITIES),
                volumes=volumes,
                environment={"CI": "true", "CI_DRIVER": CI_DRIVER_MARKER},
                labels={LABEL_ROLE: "job", LABEL_DESCRIPTOR: descriptor.name},
            )
        except (ImageNotFound, APIError) as e:
            logger.error("Creating the job container for %s failed: %s", descriptor.name, e)
            raise InstanceCreateError(f"Creating the job for {descriptor.name} failed: {e}")

        logger.info("Created job container %s for %s", container.short_id, descriptor.name)
        return container

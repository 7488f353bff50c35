"""
Job Runner
==========
Starts a created job container, streams its output and waits for it to
exit. A failed job can be turned into a post-mortem session.

State machine:
    CREATED → RUNNING → SUCCEEDED
                      → FAILED → (post-mortem) POSTMORTEM_ACTIVE → DISCARDED

POST-MORTEM:
    The failed container's filesystem is committed to a separately tagged
    image, then an interactive privileged shell is started against it as
    root with the job's capabilities and mounts. The docker CLI is used for
    this one step because it owns the terminal (TTY, raw mode, resize);
    it honours the same DOCKER_HOST as the SDK client.

A non-zero exit status is a normal outcome and is returned, never raised.
"""
import logging
import subprocess
import sys
from typing import List, Optional, TextIO

from docker.errors import APIError

from localci.core.config import RunConfig
from localci.core.constants import DEFAULT_DESCRIPTOR_NAME, JOB_CAPABILITIES, POSTMORTEM_TAG_PREFIX
from localci.models.job import JobInstance, JobState, RunResult
from localci.pipeline.resources import ResourceLedger

logger = logging.getLogger(__name__)


class JobRunner:

    def __init__(
        self,
        config: RunConfig,
        ledger: Optional[ResourceLedger] = None,
        output: Optional[TextIO] = None,
    ) -> None:
        self.config = config
        self.ledger = ledger
        self.output = output or sys.stdout

    def run(self, instance: JobInstance, post_mortem: bool = False) -> RunResult:
        """Run ``instance`` to completion. Blocks until the job (and any
        post-mortem session) has ended."""
        descriptor = instance.descriptor
        container = instance.container

        instance.state = JobState.RUNNING
        logger.info("Starting job %s (%s)", descriptor.name, instance.short_id)
        try:
            container.start()
            self._stream_output(container)
            exit_status = int(container.wait().get("StatusCode", -1))
        except APIError as e:
            instance.state = JobState.FAILED
            logger.error("Docker API error while running %s: %s", descriptor.name, e)
            return RunResult(
                descriptor=descriptor, exit_status=-1, failed=True,
                image=str(instance.image), error=f"Docker API error: {e}",
            )

        if exit_status == 0:
            instance.state = JobState.SUCCEEDED
            logger.info("Job %s succeeded", descriptor.name)
            return RunResult(descriptor=descriptor, exit_status=0, failed=False, image=str(instance.image))

        instance.state = JobState.FAILED
        logger.warning("Job %s failed with exit status %d", descriptor.name, exit_status)

        postmortem_image = None
        if post_mortem:
            postmortem_image = self.post_mortem(instance)

        return RunResult(
            descriptor=descriptor,
            exit_status=exit_status,
            failed=True,
            image=str(instance.image),
            postmortem_image=postmortem_image,
        )

    def _stream_output(self, container) -> None:
        for chunk in container.logs(stream=True, follow=True, stdout=True, stderr=True):
            self.output.write(chunk.decode("utf-8", errors="replace"))
            self.output.flush()

    # ------------------------------------------------------------------
    # Post-mortem
    # ------------------------------------------------------------------
    def snapshot_tag(self, instance: JobInstance) -> str:
        return f"{POSTMORTEM_TAG_PREFIX}-{instance.descriptor.suffix or DEFAULT_DESCRIPTOR_NAME}"

    def shell_command(self, image_ref: str, interactive_tty: bool) -> List[str]:
        cmd = ["docker", "run", "--rm", "-i"]
        if interactive_tty:
            cmd.append("-t")
        cmd += ["--privileged", "--user", "root"]
        for cap in JOB_CAPABILITIES:
            cmd += ["--cap-add", cap]
        for mount in self.config.mounts:
            cmd += ["-v", mount.as_bind()]
        cmd += ["--entrypoint", self.config.postmortem_shell, image_ref]
        return cmd

    def post_mortem(self, instance: JobInstance) -> Optional[str]:
        """
        Snapshot the failed container and open an interactive shell in it.

        Returns the snapshot image reference, or None if the snapshot
        could not be taken.
        """
        tag = self.snapshot_tag(instance)
        try:
            instance.container.commit(repository=instance.image.repository, tag=tag)
        except APIError as e:
            logger.error("Could not snapshot %s for post-mortem: %s", instance.descriptor.name, e)
            return None

        image_ref = f"{instance.image.repository}:{tag}"
        if self.ledger is not None:
            self.ledger.track_snapshot(image_ref)

        instance.state = JobState.POSTMORTEM_ACTIVE
        logger.info("Post-mortem shell in %s; exit the shell to continue", image_ref)
        cmd = self.shell_command(image_ref, interactive_tty=sys.stdin.isatty())
        try:
            completed = subprocess.run(cmd, check=False)
        except OSError as e:
            logger.error("Could not start post-mortem shell for %s: %s", instance.descriptor.name, e)
        else:
            logger.debug("Post-mortem shell exited with %d", completed.returncode)

        instance.state = JobState.DISCARDED
        return image_ref

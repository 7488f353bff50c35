"""
Resource Ledger
===============
Records every container and image a run creates and removes them when the
run ends, on every exit path (success, job failure, exception,
KeyboardInterrupt).

    job containers: always removed
    post-mortem snapshots: always removed
    job images: kept for layer-cache reuse unless the run was started
                with --rm-images

Removal failures are logged, never raised: teardown must not mask the
error that ended the run.
"""
import logging
from typing import List

from docker.errors import APIError, NotFound

logger = logging.getLogger(__name__)


class ResourceLedger:

    def __init__(self, client, remove_images: bool = False) -> None:
        self.client = client
        self.remove_images = remove_images
        self.containers: List = []
        self.images: List[str] = []

    def __enter__(self) -> "ResourceLedger":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def track_container(self, container) -> None:
        self.containers.append(container)

    def track_snapshot(self, image_ref: str) -> None:
        self.images.append(image_ref)

    def track_job_image(self, image_ref: str) -> None:
        if self.remove_images:
            self.images.append(image_ref)

    def release(self) -> None:
        """Remove containers first (they hold references to images)."""
        while self.containers:
            container = self.containers.pop()
            try:
                container.remove(force=True)
                logger.info("Container %s removed", container.short_id)
            except NotFound:
                pass
            except APIError:
                logger.warning("Failed to remove container %s", container.short_id, exc_info=True)

        while self.images:
            image_ref = self.images.pop()
            try:
                self.client.images.remove(image_ref, force=True)
                logger.info("Image %s removed", image_ref)
            except NotFound:
                pass
            except APIError:
                logger.warning("Failed to remove image %s", image_ref, exc_info=True)

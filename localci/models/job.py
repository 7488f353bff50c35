"""
Job Models
==========
Descriptors, built images, job instances and their results.

    JobDescriptor: one dockerfile plus the suffix used in image tagging
    ImageHandle: deterministic image name, reused across runs for caching
    JobInstance: a created container and its lifecycle state
    RunResult: outcome of one descriptor, collected by the orchestrator
"""
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from localci.core.constants import DEFAULT_DESCRIPTOR_NAME


class JobState(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    POSTMORTEM_ACTIVE = "postmortem_active"
    DISCARDED = "discarded"


class JobDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    dockerfile: Path
    suffix: str = ""
    synthesized: bool = False

    @property
    def name(self) -> str:
        if self.synthesized:
            return DEFAULT_DESCRIPTOR_NAME
        return self.dockerfile.name


class ImageHandle(BaseModel):
    model_config = ConfigDict(frozen=True)

    repository: str
    tag: str

    def __str__(self) -> str:
        return f"{self.repository}:{self.tag}"


@dataclass
class JobInstance:
    """A created (not yet started) job container bound to one image."""
    descriptor: JobDescriptor
    image: ImageHandle
    container: Any
    state: JobState = JobState.CREATED

    @property
    def short_id(self) -> str:
        return getattr(self.container, "short_id", "") or ""


class RunResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    descriptor: JobDescriptor
    exit_status: int
    failed: bool
    image: Optional[str] = None
    postmortem_image: Optional[str] = None
    error: Optional[str] = None

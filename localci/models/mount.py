"""
Mount Model
Pydantic model for one validated bind mount handed to job containers.
"""
from typing import Literal

from pydantic import BaseModel, ConfigDict


class Mount(BaseModel):
    model_config = ConfigDict(frozen=True)

    host_path: str
    container_path: str
    mode: Literal["ro", "rw"] = "rw"

    def as_bind(self) -> str:
        """``host:container:mode`` spec, for the SDK ``volumes`` list and ``docker run -v``."""
        return f"{self.host_path}:{self.container_path}:{self.mode}"

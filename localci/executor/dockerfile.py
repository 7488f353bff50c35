"""
Dockerfile Handling
===================
Job descriptor discovery, the synthesized default descriptor, and the entry
command rewrite used when an override script is given.

Naming convention:
    Every regular file at the top level of the build context named the
    descriptor prefix (``Dockerfile.ci``), or the prefix followed by one of
    ``.-_``, is one job. The rest of the filename, minus leading
    separators, is its suffix:

        Dockerfile.ci          → ""       (unsuffixed)
        Dockerfile.ci.alpine   → "alpine"
        Dockerfile.ci-arm64    → "arm64"
        Dockerfile.cix         → not a descriptor

    Two descriptors with the same suffix are a ConfigError.

Rewritten and synthesized dockerfiles are written to a scratch directory
outside the build context; the context itself is never modified.
"""
import json
import logging
from pathlib import Path
from typing import Dict, List

from localci.core.errors import ConfigError
from localci.models.job import JobDescriptor

logger = logging.getLogger(__name__)

_SUFFIX_SEPARATORS = ".-_"

DEFAULT_TEMPLATE = """\
FROM {base_image}
ARG UID=1000
ARG GID=1000
ARG CI_DRIVER
ENV CI_DRIVER=${{CI_DRIVER}}
RUN (getent group ${{GID}} >/dev/null || groupadd --gid ${{GID}} ci) \\
 && (getent passwd ${{UID}} >/dev/null || useradd --create-home --uid ${{UID}} --gid ${{GID}} ci)
COPY --chown=${{UID}}:${{GID}} . /src
WORKDIR /src
USER ${{UID}}:${{GID}}
{entry}
"""


def entry_command(script_name: str) -> str:
    """CMD instruction running ``script_name`` from the working directory."""
    return "CMD " + json.dumps([f"./{script_name}"])


def is_descriptor_name(filename: str, prefix: str) -> bool:
    """The bare prefix, or the prefix followed by a separator (``Dockerfile.cix`` is not one)."""
    if not filename.startswith(prefix):
        return False
    rest = filename[len(prefix):]
    return not rest or rest[0] in _SUFFIX_SEPARATORS


def descriptor_suffix(filename: str, prefix: str) -> str:
    """Suffix of a descriptor filename, ``""`` for the bare prefix."""
    if not is_descriptor_name(filename, prefix):
        raise ValueError(f"{filename} is not a {prefix} descriptor name")
    return filename[len(prefix):].lstrip(_SUFFIX_SEPARATORS)


def discover_descriptors(context_path: Path, prefix: str) -> List[JobDescriptor]:
    """Descriptors at the top level of ``context_path``, sorted by filename."""
    descriptors = [
        JobDescriptor(dockerfile=entry, suffix=descriptor_suffix(entry.name, prefix))
        for entry in sorted(context_path.iterdir(), key=lambda p: p.name)
        if entry.is_file() and is_descriptor_name(entry.name, prefix)
    ]

    # one suffix per image name
    seen: Dict[str, str] = {}
    for descriptor in descriptors:
        if descriptor.suffix in seen:
            raise ConfigError(
                f"Descriptors {seen[descriptor.suffix]} and {descriptor.name} share the suffix "
                f"'{descriptor.suffix}'; rename one of them"
            )
        seen[descriptor.suffix] = descriptor.name

    logger.debug("Discovered %d job descriptor(s) in %s", len(descriptors), context_path)
    return descriptors


def synthesize_default(scratch_dir: Path, prefix: str, base_image: str, script_name: str) -> JobDescriptor:
    """Write the minimal default dockerfile to ``scratch_dir``."""
    path = scratch_dir / prefix
    path.write_text(
        DEFAULT_TEMPLATE.format(base_image=base_image, entry=entry_command(script_name)),
        encoding="utf-8",
    )
    logger.info("No %s* found, using the default %s job", prefix, base_image)
    return JobDescriptor(dockerfile=path, suffix="", synthesized=True)


def _last_instruction_start(lines: List[str]) -> int:
    """Index of the first line of the last instruction, -1 if there is none."""
    end = len(lines) - 1
    while end >= 0 and (not lines[end].strip() or lines[end].lstrip().startswith("#")):
        end -= 1
    if end < 0:
        return -1

    start = end
    # Walk back over continuation lines ("RUN a \" / "  && b")
    while start > 0 and lines[start - 1].rstrip().endswith("\\"):
        start -= 1
    return start


def replace_entry_command(text: str, script_name: str) -> str:
    """
    Replace the final instruction of a dockerfile with a CMD that runs
    ``script_name`` instead of the default script.
    """
    lines = text.splitlines()
    start = _last_instruction_start(lines)
    if start < 0:
        return text.rstrip("\n") + "\n" + entry_command(script_name) + "\n"
    return "\n".join(lines[:start] + [entry_command(script_name)]) + "\n"

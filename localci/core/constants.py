"""
Constants
Centralised storage for tool-wide constants: naming conventions, capability
sets and the labels attached to every container this tool creates.
"""
TOOL_NAME = "localci"

# Passed to every image build and job container so CI scripts can detect
# that they are being driven by this tool instead of the hosted CI.
CI_DRIVER_MARKER = "localci"

DEFAULT_SCRIPT_NAME = "ci.sh"
DOCKERFILE_PREFIX = "Dockerfile.ci"
DEFAULT_BASE_IMAGE = "debian:stable-slim"
DEFAULT_CLONE_DEPTH = 50
DEFAULT_POSTMORTEM_SHELL = "/bin/bash"

# ptrace for debuggers/sanitizers, SYS_ADMIN for perf_event_open on kernels
# without CAP_PERFMON.
JOB_CAPABILITIES = ("SYS_PTRACE", "SYS_ADMIN")

REMOTE_SCHEMES = ("http", "https", "git", "ssh", "file")

SHORT_TAG_LENGTH = 6
DIRTY_TAG = "dirty"
DEFAULT_IMAGE_TAG = "latest"
NAME_FILLER = "-"
MAX_TAG_LENGTH = 128

POSTMORTEM_TAG_PREFIX = "postmortem"
DEFAULT_DESCRIPTOR_NAME = "default"

LABEL_ROLE = "localci.role"
LABEL_DESCRIPTOR = "localci.descriptor"

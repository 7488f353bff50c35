"""
Output Formatter
================
THE SINGLE SOURCE OF TRUTH for all end-of-run strings shown to the operator.

STRICT DETERMINISM CONTRACT:
  - This module NEVER reads environment variables.
  - This module NEVER talks to git or Docker.
  - Given the same inputs, it ALWAYS returns the exact same output string.

Formats (byte-for-byte):
    PASS {descriptor} (exit 0)
    FAIL {descriptor} (exit {status})
    FAIL {descriptor} ({error first line})
    {failed} of {total} job(s) failed: {name}, {name}
"""
from typing import Iterable, List

from localci.core.constants import TOOL_NAME
from localci.models.job import RunResult

POSTMORTEM_HINT = (
    f"Hint: re-run with --postmortem to open a root shell in the final "
    f"filesystem state of each failed job ({TOOL_NAME} --postmortem ...)."
)


def format_result(result: RunResult) -> str:
    """One pass/fail line for a descriptor."""
    name = result.descriptor.name
    if not result.failed:
        return f"PASS {name} (exit {result.exit_status})"
    if result.error:
        reason = result.error.strip().splitlines()[0]
        return f"FAIL {name} ({reason})"
    return f"FAIL {name} (exit {result.exit_status})"


def failed_names(results: Iterable[RunResult]) -> List[str]:
    """Names of failed descriptors, in run order."""
    return [r.descriptor.name for r in results if r.failed]


def format_summary(results: List[RunResult]) -> str:
    """Trailing summary; empty string when every job passed."""
    failed = failed_names(results)
    if not failed:
        return ""
    return f"{len(failed)} of {len(results)} job(s) failed: {', '.join(failed)}"

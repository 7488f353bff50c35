"""
Results Writer
==============
Serializes the outcome of a run into a JSON report (``--results-file``).
"""
import json
import logging
from pathlib import Path
from typing import List

from localci.models.build_context import BuildContext
from localci.models.job import RunResult

logger = logging.getLogger(__name__)


class ResultsWriter:
    """Writes one JSON document per run: context metadata plus job results."""

    @staticmethod
    def build_report(context: BuildContext, results: List[RunResult]) -> dict:
        failed = [r.descriptor.name for r in results if r.failed]
        return {
            "context": {
                "reference": context.reference.raw if context.reference else None,
                "prefix": context.prefix,
                "short_tag": context.short_tag,
                "script": context.script_name,
                "script_overridden": context.script_overridden,
            },
            "jobs": [
                {
                    "descriptor": r.descriptor.name,
                    "suffix": r.descriptor.suffix,
                    "image": r.image,
                    "exit_status": r.exit_status,
                    "failed": r.failed,
                    "postmortem_image": r.postmortem_image,
                    "error": r.error,
                }
                for r in results
            ],
            "failed": failed,
            "exit_code": len(failed),
        }

    @staticmethod
    def write_results(context: BuildContext, results: List[RunResult], output_path: Path) -> bool:
        """Write the report; failures are logged, never raised."""
        try:
            data = ResultsWriter.build_report(context, results)
            abs_output = Path(output_path).resolve()
            logger.info("Writing run results to %s", abs_output)
            abs_output.write_text(json.dumps(data, indent=2), encoding="utf-8")
            return True
        except OSError as e:
            logger.error("Failed to write %s: %s", output_path, e, exc_info=True)
            return False

"""
Orchestrator
============
Drives every job descriptor of a build context through
ImageBuilder → JobRunner and turns the results into the process exit code.

Core rules:
    - Descriptors run strictly one after another, in discovery order.
      Concurrent jobs would interleave their output; that needs a log
      multiplexing design and is not done here.
    - A build, creation or run failure is recorded as a failed RunResult
      for that descriptor only; the remaining descriptors still run.
    - Exit code = number of failed descriptors (0 = all passed).
    - Containers and post-mortem snapshots created during the run are
      removed when ``execute`` returns or raises (see ResourceLedger).
"""
import logging
import sys
import tempfile
from pathlib import Path
from typing import List, Optional, TextIO

import click

from localci.core.config import RunConfig
from localci.core.constants import TOOL_NAME
from localci.core.errors import BuildError, ConfigError, InstanceCreateError
from localci.core.output_formatter import POSTMORTEM_HINT, format_result, format_summary
from localci.executor.dockerfile import discover_descriptors, synthesize_default
from localci.executor.image_builder import ImageBuilder
from localci.executor.job_runner import JobRunner
from localci.models.build_context import BuildContext
from localci.models.job import JobDescriptor, RunResult
from localci.pipeline.resources import ResourceLedger
from localci.services.results_writer import ResultsWriter

logger = logging.getLogger(__name__)


class Orchestrator:

    def __init__(self, config: RunConfig, client, output: Optional[TextIO] = None) -> None:
        self.config = config
        self.client = client
        self.output = output or sys.stdout
        self.results: List[RunResult] = []

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------
    def discover(self, context: BuildContext, scratch_dir: Path) -> List[JobDescriptor]:
        """
        Descriptors for ``context``; one synthesized default if none exist.
        ``--only`` narrows the list by suffix.
        """
        descriptors = discover_descriptors(context.path, self.config.dockerfile_prefix)
        if not descriptors:
            descriptors = [
                synthesize_default(
                    scratch_dir,
                    self.config.dockerfile_prefix,
                    self.config.base_image,
                    context.script_name,
                )
            ]

        if self.config.only:
            known = {d.suffix for d in descriptors}
            unknown = [s for s in self.config.only if s not in known]
            if unknown:
                raise ConfigError(
                    f"No job descriptor with suffix {', '.join(unknown)} "
                    f"(available: {', '.join(sorted(s or '<none>' for s in known))})"
                )
            descriptors = [d for d in descriptors if d.suffix in self.config.only]

        return descriptors

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    def execute(self, context: BuildContext, descriptors: Optional[List[JobDescriptor]] = None) -> int:
        """Run every descriptor and return the number of failed ones."""
        self.results = []

        with ResourceLedger(self.client, remove_images=self.config.remove_images) as ledger, \
                tempfile.TemporaryDirectory(prefix=f"{TOOL_NAME}-dockerfiles-") as scratch:
            scratch_dir = Path(scratch)
            if descriptors is None:
                descriptors = self.discover(context, scratch_dir)

            builder = ImageBuilder(self.config, self.client, scratch_dir)
            runner = JobRunner(self.config, ledger=ledger, output=self.output)

            logger.info("Running %d job(s) from %s", len(descriptors), context.prefix)
            for index, descriptor in enumerate(descriptors, 1):
                logger.info("[JOB %d/%d] %s", index, len(descriptors), descriptor.name)
                result = self._run_one(descriptor, context, builder, runner, ledger)
                self.results.append(result)
                click.secho(format_result(result), file=self.output, fg="red" if result.failed else "green")

        return self.report(context)

    def _run_one(
        self,
        descriptor: JobDescriptor,
        context: BuildContext,
        builder: ImageBuilder,
        runner: JobRunner,
        ledger: ResourceLedger,
    ) -> RunResult:
        try:
            handle, instance = builder.build(descriptor, context)
        except (BuildError, InstanceCreateError) as e:
            return RunResult(descriptor=descriptor, exit_status=-1, failed=True, error=str(e))

        ledger.track_job_image(str(handle))
        ledger.track_container(instance.container)
        return runner.run(instance, post_mortem=self.config.post_mortem)

    def report(self, context: BuildContext) -> int:
        """Print the summary (and hint), write the JSON report, return the exit code."""
        failed = [r for r in self.results if r.failed]

        summary = format_summary(self.results)
        if summary:
            click.secho(summary, file=self.output, fg="red", bold=True)
            if not self.config.post_mortem:
                click.echo(POSTMORTEM_HINT, file=self.output)

        if self.config.results_path is not None:
            ResultsWriter.write_results(context, self.results, self.config.results_path)

        logger.info("Run complete | jobs=%d | failed=%d", len(self.results), len(failed))
        return len(failed)

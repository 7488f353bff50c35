"""
Command Line Interface
======================
``localci [REFERENCE] [options]``

Builds the requested revision (the working tree when REFERENCE is omitted)
into one container image per job descriptor, runs each job and exits with
the number of failed jobs. Fatal errors exit with 100 or above.
"""
import logging
import signal
import sys
from pathlib import Path

import click

from localci.core.config import LOG_DIR, RunConfig
from localci.core.errors import LocalCIError
from localci.executor import docker_client
from localci.pipeline.orchestrator import Orchestrator
from localci.services.git_service import ensure_git
from localci.services.ref_resolver import RefResolver
from localci.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

INTERRUPTED_EXIT_CODE = 130


def _interrupt_on_sigterm(signum, frame):
    raise KeyboardInterrupt


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("reference", required=False)
@click.option("-C", "--directory", "workdir", type=click.Path(file_okay=False, exists=True, path_type=Path),
              default=".", show_default=True, help="Working tree to build or resolve references in.")
@click.option("-s", "--script", "override_script", type=click.Path(dir_okay=False, path_type=Path),
              help="Run this script instead of the default CI script.")
@click.option("-m", "--mount", "mounts", multiple=True, metavar="HOST:CONTAINER[:ro|rw]",
              help="Bind mount for job containers; repeatable or comma-separated.")
@click.option("-p", "--postmortem", "post_mortem", is_flag=True,
              help="Open a root shell in the final state of every failed job.")
@click.option("--only", multiple=True, metavar="SUFFIX", help="Only run descriptors with this suffix.")
@click.option("--results-file", "results_path", type=click.Path(dir_okay=False, path_type=Path),
              help="Write a JSON report of the run.")
@click.option("--rm-images", "remove_images", is_flag=True, help="Remove job images after the run.")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging.")
@click.version_option(package_name="localci")
def main(reference, workdir, override_script, mounts, post_mortem, only, results_path, remove_images, verbose):
    """Run the CI jobs of REFERENCE (branch, tag, commit or repository URL) locally."""
    setup_logging(level=logging.DEBUG if verbose else logging.INFO, log_dir=LOG_DIR)
    signal.signal(signal.SIGTERM, _interrupt_on_sigterm)

    try:
        config = RunConfig.build(
            workdir=workdir,
            reference=reference,
            override_script=override_script,
            mounts=mounts,
            post_mortem=post_mortem,
            only=tuple(only),
            results_path=results_path,
            remove_images=remove_images,
        )
        ensure_git()
        if config.post_mortem:
            docker_client.ensure_docker_cli()
        client = docker_client.connect()

        with RefResolver(config).resolve() as context:
            exit_code = Orchestrator(config, client).execute(context)
    except LocalCIError as e:
        click.secho(f"localci: {e}", fg="red", bold=True, err=True)
        sys.exit(e.exit_code)
    except KeyboardInterrupt:
        click.secho("localci: interrupted", fg="red", bold=True, err=True)
        sys.exit(INTERRUPTED_EXIT_CODE)

    sys.exit(exit_code)

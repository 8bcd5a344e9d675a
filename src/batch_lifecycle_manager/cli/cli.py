# -*- coding: utf-8 -*-

import json
import logging

import click

from ..core.batching.models import JobStatus
from ..core.exceptions import BatchLifecycleError, JobNotFoundError
from ..core.utils.misc import mask_path
from .utils import (
    setup_logging,
    _validate_positive_number_callback,
    _load_config,
    _get_manager,
    _format_job_row,
    _job_table_header,
)


@click.group()
@click.option(
    '-c', '--config', 'config_path', type=click.Path(exists=True, dir_okay=False), default=None,
    help='YAML configuration file. Missing keys fall back to BLM_* environment variables.'
)
@click.option(
    '-v', '--verbose', is_flag=True,
    help='Enable verbose (DEBUG) logging'
)
@click.option(
    '-q', '--quiet', is_flag=True,
    help='Only show warnings and errors'
)
@click.pass_context
def cli(ctx, config_path, verbose, quiet):
    """
    Batch Lifecycle Manager CLI - submit record files as OpenAI Batch jobs,
    track them until they finish and persist normalized results.

    \b
    Ensure you have the appropriate API keys set in your environment variables:
    - OPENAI_API_KEY (for OpenAI)
    - AZURE_OPENAI_API_KEY, AZURE_OPENAI_ENDPOINT (for Azure OpenAI, with BLM_API=AzureOpenAI)
    """
    setup_logging(verbose=verbose, quiet=quiet)

    ctx.ensure_object(dict)
    try:
        ctx.obj['config'] = _load_config(config_path)
    except BatchLifecycleError as e:
        logging.error(f"Invalid configuration: {e}")
        raise SystemExit(1)


@cli.command()
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@click.option(
    '--wait', is_flag=True, default=False,
    help='Keep polling until the job is processed or failed.'
)
@click.option(
    '--timeout', type=float, default=26 * 3600,
    callback=_validate_positive_number_callback,
    help='Maximum seconds to wait with --wait (default: 26 hours).'
)
@click.pass_context
def submit(ctx, file, wait, timeout):
    """
    Submit the records in FILE as one batch job.

    \b
    FILE:
      JSON array, single JSON object, JSON Lines, CSV or Parquet file.
    """
    manager = _get_manager(ctx)
    try:
        job = manager.submit_file(file)
    except (BatchLifecycleError, ValueError) as e:
        logging.error(f"Submission failed: {e}")
        raise SystemExit(1)

    if job is None:
        logging.info(f"Nothing to submit in {mask_path(file)}")
        return
    logging.info(f"Submitted batch {job.job_id} with {job.record_count} records")

    if wait:
        try:
            job = manager.wait(job.job_id, timeout)
        except TimeoutError as e:
            logging.error(str(e))
            raise SystemExit(1)
        if job.status == JobStatus.PROCESSED:
            logging.info(f"Results saved to {job.output_locator}")
        else:
            logging.error(f"Batch {job.job_id} failed: {job.error_message}")
            raise SystemExit(1)


@cli.command()
@click.pass_context
def poll(ctx):
    """Run one polling pass over every open job."""
    manager = _get_manager(ctx)
    summary = manager.poll()
    if summary.errors or summary.reconciliation_errors:
        raise SystemExit(1)


@cli.command()
@click.option(
    '--input-dir', type=click.Path(file_okay=False), default=None,
    help='Folder scanned for new record files before every pass (default: BLM_INPUT_DIR).'
)
@click.option(
    '--interval', type=float, default=None,
    callback=_validate_positive_number_callback,
    help='Seconds between passes (default: BLM_POLL_INTERVAL or 300).'
)
@click.option(
    '--max-ticks', type=int, default=None,
    callback=_validate_positive_number_callback,
    help='Stop after this many passes.'
)
@click.pass_context
def watch(ctx, input_dir, interval, max_ticks):
    """Submit new input files and poll open jobs on a fixed interval."""
    if interval is not None:
        ctx.obj['config'].poll_interval_seconds = interval
    manager = _get_manager(ctx)
    scheduler = manager.scheduler(input_dir)
    logging.info(f"Polling every {scheduler.interval:.0f}s"
                 + (f", watching {mask_path(scheduler.watcher.input_dir)}" if scheduler.watcher else ""))
    try:
        scheduler.run(max_ticks=max_ticks)
    except KeyboardInterrupt:
        logging.info("Stopped watching")


@cli.command()
@click.argument('job_id')
@click.pass_context
def status(ctx, job_id):
    """Print the tracked record of JOB_ID as JSON."""
    manager = _get_manager(ctx, require_credentials=False)
    try:
        job = manager.status(job_id)
    except JobNotFoundError as e:
        logging.error(str(e))
        raise SystemExit(1)
    click.echo(json.dumps(job.to_dict(), indent=2, ensure_ascii=False))


@cli.command(name='list')
@click.option(
    '-s', '--status', 'status_filter', default=None,
    type=click.Choice([s.value for s in JobStatus], case_sensitive=False),
    help='Only list jobs in this state.'
)
@click.pass_context
def list_jobs(ctx, status_filter):
    """List tracked batch jobs."""
    manager = _get_manager(ctx, require_credentials=False)
    jobs = manager.list_jobs(status_filter.lower() if status_filter else None)
    if not jobs:
        logging.info("No batch jobs found.")
        return
    click.echo(_job_table_header())
    for job in jobs:
        click.echo(_format_job_row(job))


@cli.command()
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@click.option(
    '--batch-size', type=int, default=None,
    callback=_validate_positive_number_callback,
    help='Concurrent requests per chunk (default: BLM_DIRECT_BATCH_SIZE or 10).'
)
@click.option(
    '--no-progress', is_flag=True, default=False,
    help='Hide the progress bar.'
)
@click.pass_context
def direct(ctx, file, batch_size, no_progress):
    """Process the records in FILE immediately, without the Batch API."""
    if batch_size is not None:
        ctx.obj['config'].direct_batch_size = batch_size
    manager = _get_manager(ctx)
    try:
        locator = manager.process_file_directly(file, show_progress=not no_progress)
    except (BatchLifecycleError, ValueError) as e:
        logging.error(f"Direct processing failed: {e}")
        raise SystemExit(1)
    if locator:
        logging.info(f"Results saved to {locator}")

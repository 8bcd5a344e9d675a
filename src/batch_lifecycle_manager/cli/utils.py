# -*- coding: utf-8 -*-

import logging
from pathlib import Path

import click

from ..core.exceptions import BatchLifecycleError
from ..core.batching.manager import BatchLifecycleManager
from ..core.utils.config import BatchLifecycleConfig
from ..core.utils.misc import format_timestamp, mask_path


def setup_logging(verbose=False, quiet=False):
    """Configure logging for CLI execution."""
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    # Configure root logger
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True  # Override any existing configuration
    )

    # Reduce noise from external libraries in non-verbose mode
    if not verbose:
        for name in ("urllib3", "openai", "azure", "httpx"):
            logging.getLogger(name).setLevel(logging.WARNING)


def _validate_positive_number_callback(ctx, param, value):
    """Validate that the provided value is a positive number."""
    if value is not None and value <= 0:
        raise click.BadParameter("Value must be a positive number.")
    return value


#=======================================================================
# Context helpers
#=======================================================================

def _load_config(config_path: str | None) -> BatchLifecycleConfig:
    if config_path:
        logging.debug(f"Loading configuration from {mask_path(Path(config_path))}")
        return BatchLifecycleConfig.from_yaml(config_path)
    return BatchLifecycleConfig.from_env()


def _get_manager(ctx, require_credentials: bool = True) -> BatchLifecycleManager:
    """Build the manager for this invocation, exiting with status 1 on bad configuration."""
    key = 'manager' if require_credentials else 'readonly_manager'
    if key not in ctx.obj:
        try:
            ctx.obj[key] = BatchLifecycleManager.from_config(
                ctx.obj['config'], require_credentials=require_credentials
            )
        except BatchLifecycleError as e:
            logging.error(f"Invalid configuration: {e}")
            raise SystemExit(1)
    return ctx.obj[key]


def _format_job_row(job) -> str:
    submitted = format_timestamp(job.submitted_at) or "-"
    return (f"{job.job_id:<40} {job.status.value:<10} {job.record_count:>7} "
            f"{submitted:<26} {job.retry_count:>3}  {job.output_locator or job.error_message or ''}")


def _job_table_header() -> str:
    return f"{'JOB ID':<40} {'STATUS':<10} {'RECORDS':>7} {'SUBMITTED':<26} {'RTY':>3}  RESULT"

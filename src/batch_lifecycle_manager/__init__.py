"""
Batch Lifecycle Manager - asynchronous LLM batch inference jobs, tracked
from submission to persisted results.

A record collection is submitted as one OpenAI (or Azure OpenAI) Batch job.
The job is tracked in a durable store, polled on an interval, and once the
provider reports completion its results are downloaded, normalized and
written as a JSON Lines artifact.

    pending --remote completed--> completed --result persisted--> processed
    pending --remote failed/expired/cancelled or retries exhausted--> failed

Example Usage:

    Programmatic:
        import batch_lifecycle_manager as blm

        config = blm.BatchLifecycleConfig.from_env()
        manager = blm.BatchLifecycleManager.from_config(config)
        job = manager.submit_file('./records.jsonl')
        job = manager.wait(job.job_id, timeout=26 * 3600)

    CLI Usage:
        $ blm submit ./records.jsonl
        $ blm watch --input-dir ./incoming

Environment Setup:
    Required environment variables:
    - OPENAI_API_KEY (for OpenAI API)
    - AZURE_OPENAI_API_KEY + AZURE_OPENAI_ENDPOINT (for Azure OpenAI)

    These can be set via .env files in:
    - Current working directory (.env, .env.local)
    - Project root directory
"""

__version__ = "0.1.0"

# Load environment on package import
from .core.utils.environment import setup_environment
setup_environment()

from . import core
from .core.exceptions import BatchLifecycleError
from .core.batching.models import BatchJob, JobStatus
from .core.utils.config import BatchLifecycleConfig
batching = core.batching
utils = core.utils
BatchLifecycleManager = core.BatchLifecycleManager

__all__ = [
    '__version__',
    'batching',
    'utils',
    'BatchJob',
    'JobStatus',
    'BatchLifecycleConfig',
    'BatchLifecycleError',
    'BatchLifecycleManager',
]

del setup_environment, core

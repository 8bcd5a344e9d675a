"""
Batch job lifecycle operations.

Submodules:
    models:     BatchJob record and the job state machine
    store:      Versioned job store (file backend)
    blob:       Azure Blob Storage job and artifact stores
    artifacts:  Result artifact stores
    jobs:       Provider contract and the OpenAI Batch API implementation
    files:      Request line building and batch input documents
    parse:      Batch output parsing and result normalization
    submitter:  Upload + create + track
    poller:     Periodic status polling
    reconciler: Result download, normalization and persistence
    scheduler:  Timer and input-folder triggers
    direct:     Non-batch fallback processing
    manager:    High-level wiring from one configuration

Example Usage:
    import batch_lifecycle_manager as blm

    config = blm.BatchLifecycleConfig.from_env(store_dir="./jobs", output_dir="./results")
    manager = blm.BatchLifecycleManager.from_config(config)
    job = manager.submit_file("./calls.json")
    manager.poll()
"""

from . import models
from . import store
from . import artifacts
from . import jobs
from . import files
from . import parse
from . import submitter
from . import poller
from . import reconciler
from . import scheduler
from . import direct
from . import manager

__all__ = [
    'models',
    'store',
    'artifacts',
    'jobs',
    'files',
    'parse',
    'submitter',
    'poller',
    'reconciler',
    'scheduler',
    'direct',
    'manager',
]

"""
Core functionality for the Batch Lifecycle Manager.

Architecture:
    batching/   - Job lifecycle: submit, poll, reconcile
    utils/      - Configuration, clients, record reading
    exceptions  - Error hierarchy rooted at BatchLifecycleError
"""

from . import exceptions
from . import batching
from . import utils

from .batching.manager import BatchLifecycleManager

__all__ = [
    'exceptions',
    'batching',
    'utils',
    'BatchLifecycleManager',
]

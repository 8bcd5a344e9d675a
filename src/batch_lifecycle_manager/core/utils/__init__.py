"""
Shared utilities for the Batch Lifecycle Manager.

Submodules:
    config:      BatchLifecycleConfig (environment / YAML)
    clients:     OpenAI and Azure OpenAI client creation
    datasource:  Reading record collections (JSON, JSONL, CSV, Parquet)
    misc:        JSONL and timestamp helpers (internal)
    environment: .env loading (internal)
"""

from . import config
from . import clients
from . import datasource

__all__ = [
    'config',
    'clients',
    'datasource',
]

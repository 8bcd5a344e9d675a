"""
Command-line interface for the Batch Lifecycle Manager.

Commands:
    submit FILE       Read records from FILE and submit one batch job
    poll              Run one polling pass over every open job
    watch             Scan the input folder and poll on a fixed interval
    status JOB_ID     Print the tracked record of a job
    list              List tracked jobs, optionally by status
    direct FILE       Process records without the Batch API

Global options:
    -c/--config FILE  YAML configuration (falls back to BLM_* variables)
    -v/--verbose      DEBUG logging
    -q/--quiet        Warnings and errors only

Example Workflow:
    $ blm submit ./calls/2024-06-01.json
    $ blm poll
    $ blm list --status pending
    $ blm watch --input-dir ./incoming --interval 300
"""

from .cli import cli

__all__ = [
    'cli',
]

# -*- coding: utf-8 -*-
"""
Console entry point (`blm`, or `python -m batch_lifecycle_manager.cli`).

Logging is configured from the raw argv before click parses anything, so
messages emitted while loading `.env` files are not lost.
"""

import os
import sys
import logging

from .utils import setup_logging


def _check_credentials_env():
    """Warn early when the variables needed by the configured API are absent."""
    from ..core.utils.environment import validate_required_env_vars

    api = os.getenv("BLM_API", "OpenAI")
    try:
        missing = validate_required_env_vars(api)
    except ValueError as e:
        logging.warning(f"Cannot check environment for API '{api}': {e}")
        return
    if missing:
        logging.warning(f"Missing required environment variables: {', '.join(missing)}")


def main():
    argv = sys.argv[1:]
    setup_logging(
        verbose='-v' in argv or '--verbose' in argv,
        quiet='-q' in argv or '--quiet' in argv,
    )
    # .env files were already loaded when the package was imported
    _check_credentials_env()

    from .cli import cli
    try:
        cli()
    except KeyboardInterrupt:
        logging.info("Interrupted")
        sys.exit(130)
    except Exception:
        logging.exception("Unexpected error")
        sys.exit(1)


if __name__ == '__main__':
    main()

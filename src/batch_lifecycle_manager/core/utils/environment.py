# -*- coding: utf-8 -*-

"""
Environment loading for credentials and BLM_* settings.
"""

import os
import logging
from pathlib import Path
from typing import Optional

import dotenv


ENV_FILE_NAMES = ('.env.local', '.env')

REQUIRED_ENV_VARS = {
    "OpenAI": ('OPENAI_API_KEY',),
    "AzureOpenAI": ('AZURE_OPENAI_API_KEY', 'AZURE_OPENAI_ENDPOINT'),
}


def _candidate_env_files() -> list[Path]:
    candidates = [Path.cwd() / name for name in ENV_FILE_NAMES]

    # <project_root>/src/batch_lifecycle_manager/core/utils/environment.py
    project_root = Path(__file__).resolve().parents[4]
    candidates.extend(project_root / name for name in ENV_FILE_NAMES)
    return candidates


def load_environment_variables(env_file: Optional[str] = None, verbose: bool = False) -> bool:
    """
    Load environment variables from a .env file.

    Values already present in the process environment are never overridden.

    Args:
        env_file: Specific .env file path. If None, the working directory and
            the project root are searched for .env.local and .env.
        verbose: Whether to log which file was loaded.

    Returns:
        True if a .env file was found and loaded, False otherwise.
    """
    if env_file:
        env_path = Path(env_file)
        if not env_path.exists():
            logging.warning(f"Specified .env file not found: {env_path}")
            return False
        dotenv.load_dotenv(env_path)
        if verbose:
            logging.debug(f"Loaded environment from: {env_path}")
        return True

    for env_path in _candidate_env_files():
        if env_path.exists():
            dotenv.load_dotenv(env_path)
            if verbose:
                logging.debug(f"Loaded environment from: {env_path}")
            return True

    if verbose:
        logging.debug("No .env file found. Relying on system environment variables.")
    return False


def validate_required_env_vars(api_type: str = "OpenAI") -> list:
    """
    Return the names of required environment variables that are unset.

    Args:
        api_type: Either "OpenAI" or "AzureOpenAI".
    """
    if api_type not in REQUIRED_ENV_VARS:
        raise ValueError(f"Unknown API type: {api_type}. Expected one of {list(REQUIRED_ENV_VARS)}")
    return [name for name in REQUIRED_ENV_VARS[api_type] if not os.getenv(name)]


def setup_environment(verbose: bool = False, env_file: Optional[str] = None) -> bool:
    """Load the optional .env file. Always succeeds since .env is optional."""
    load_environment_variables(env_file, verbose)
    return True

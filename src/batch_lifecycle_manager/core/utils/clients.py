# -*- coding: utf-8 -*-

import os
import logging

import openai

from ..exceptions import ConfigurationError


def create_openai_client(api_key=None):
    """
    Create an OpenAI client for API calls.

    Args:
        api_key (str): The OpenAI API key. If not provided, it will be fetched from the environment variable.

    Raises:
        ConfigurationError: If no API key is available.
    """
    if api_key is None:
        api_key = os.getenv('OPENAI_API_KEY')
    if not api_key:
        raise ConfigurationError("No OpenAI API key provided or found in environment.")

    client = openai.OpenAI(api_key=api_key)
    logging.debug("OpenAI client created successfully.")
    return client


def create_azure_openai_client(api_key=None, endpoint=None, api_version="2024-10-21"):
    """
    Create an Azure OpenAI client for API calls.

    Args:
        api_key (str): The Azure OpenAI API key. If not provided, it will be fetched from the environment variable.
        endpoint (str): The Azure OpenAI endpoint. If not provided, it will be fetched from the environment variable.
        api_version (str): Azure OpenAI REST API version. Batch support requires 2024-10-21 or later.

    Raises:
        ConfigurationError: If the key or endpoint is missing.
    """
    if api_key is None:
        api_key = os.getenv('AZURE_OPENAI_API_KEY')
    if not api_key:
        raise ConfigurationError("No Azure OpenAI API key provided or found in environment.")

    if endpoint is None:
        endpoint = os.getenv('AZURE_OPENAI_ENDPOINT')
    if not endpoint:
        raise ConfigurationError("No Azure OpenAI endpoint provided or found in environment.")

    client = openai.AzureOpenAI(
        api_key=api_key,
        api_version=api_version,
        azure_endpoint=endpoint,
    )
    logging.debug("Azure OpenAI client created successfully.")
    return client


def create_client(config):
    """Create the client matching `config.api`."""
    if config.is_azure:
        return create_azure_openai_client(
            api_key=config.api_key,
            endpoint=config.azure_endpoint,
            api_version=config.azure_api_version,
        )
    return create_openai_client(api_key=config.api_key)

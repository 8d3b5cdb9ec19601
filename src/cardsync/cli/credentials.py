"""
Configuration loading for the CLI.

Settings come from the environment (after loading an optional .env file);
with --use-vault, database credentials are overlaid from Vault.
"""

import argparse
import logging

import requests

from cardsync.config import SyncConfig, load_config, load_config_from_vault
from cardsync.errors import ConfigurationError
from cardsync.vault_client import VaultClient

logger = logging.getLogger(__name__)


def resolve_config(args: argparse.Namespace) -> SyncConfig:
    """
    Build the service configuration for a CLI invocation

    Args:
        args: Parsed command-line arguments

    Returns:
        SyncConfig

    Raises:
        ConfigurationError: If settings are malformed or Vault cannot be read
    """
    config = load_config(dotenv_path=args.env_file)

    if not args.use_vault:
        return config

    try:
        vault_client = VaultClient()
        config = load_config_from_vault(vault_client, config)
    except (ValueError, KeyError, requests.RequestException) as e:
        logger.error(f"Failed to fetch credentials from Vault: {e}")
        raise ConfigurationError(f"Failed to fetch credentials from Vault: {e}") from e

    logger.info("Successfully fetched credentials from Vault")
    return config

"""
Validation module for the sync engine.

Provides validated configuration loading.
"""

from validation.config import SyncConfig, ConfigError, validate_config, load_config

__all__ = [
    'SyncConfig',
    'ConfigError',
    'validate_config',
    'load_config',
]

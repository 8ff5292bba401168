"""
Configuration validation for the sync engine.

Provides a pydantic-settings model with fail-fast validation and sensible
defaults. Values come from (highest precedence first) explicit keyword
arguments, KINEX_SYNC_-prefixed environment variables, an optional YAML
file, then the defaults below.
"""

import logging
from typing import Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

log = logging.getLogger('kinex_sync.config')

_LOG_LEVELS = ('trace', 'debug', 'info', 'warning', 'error')


class ConfigError(Exception):
    """Configuration could not be loaded or failed validation."""


class SyncConfig(BaseSettings):
    """
    Sync engine configuration with validation.

    Tunables:
        api_base_url: Backend base URL (default: https://kinexfit.com)
        max_retries: Failed attempts before an item is marked failed (default: 5, range: 1-20)
        base_delay: Backoff delay after the first failure in seconds (default: 60.0)
        request_timeout: Total HTTP timeout in seconds (default: 30.0, range: 1.0-300.0)
        connect_timeout: HTTP connect timeout in seconds (default: 5.0, range: 0.5-60.0)
        queue_db_path: SQLite file holding the sync queue (default: sync_queue.db)
        token_file: JSON file for persisted credentials (default: None = in-memory)
        connectivity_check_interval: Seconds between reachability probes (default: 30.0)
        fail_fast_structural: Mark malformed items failed on first attempt (default: True)
        log_level: trace, debug, info, warning or error (default: info)
    """

    model_config = SettingsConfigDict(
        env_prefix='KINEX_SYNC_',
        extra='ignore',
    )

    api_base_url: str = 'https://kinexfit.com'

    max_retries: int = Field(default=5, ge=1, le=20)
    base_delay: float = Field(default=60.0, ge=0.01, le=3600.0)

    request_timeout: float = Field(default=30.0, ge=1.0, le=300.0)
    connect_timeout: float = Field(default=5.0, ge=0.5, le=60.0)

    queue_db_path: str = 'sync_queue.db'
    token_file: Optional[str] = None

    connectivity_check_interval: float = Field(default=30.0, ge=1.0, le=3600.0)

    fail_fast_structural: bool = Field(
        default=True,
        description="Mark items that can never be encoded as failed immediately instead of retrying them."
    )

    log_level: str = 'info'

    @field_validator('api_base_url', mode='after')
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        """Validate api_base_url is a valid HTTP/HTTPS URL."""
        if not v:
            raise ValueError('api_base_url is required')
        if not v.startswith(('http://', 'https://')):
            raise ValueError('api_base_url must start with http:// or https://')
        return v.rstrip('/')

    @field_validator('log_level', mode='before')
    @classmethod
    def validate_log_level(cls, v):
        """Validate log_level is one of: trace, debug, info, warning, error."""
        if isinstance(v, str) and v.lower() in _LOG_LEVELS:
            return v.lower()
        raise ValueError(f"log_level must be one of {_LOG_LEVELS}, got: {v}")

    @field_validator('fail_fast_structural', mode='before')
    @classmethod
    def validate_booleans(cls, v):
        """Ensure boolean fields are actual booleans, not truthy strings."""
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            lower = v.lower()
            if lower in ('true', '1', 'yes'):
                return True
            if lower in ('false', '0', 'no'):
                return False
            raise ValueError(f"Invalid boolean value: {v}")
        raise ValueError(f"Expected boolean, got {type(v).__name__}")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Return sources in priority order: init > env > YAML (when configured)."""
        yaml_file = settings_cls.model_config.get('yaml_file')
        if yaml_file:
            return (init_settings, env_settings, YamlConfigSettingsSource(settings_cls))
        return (init_settings, env_settings)

    def log_config(self) -> None:
        """Log the effective configuration."""
        log.info(
            f"Sync config: api_base_url={self.api_base_url}, "
            f"max_retries={self.max_retries}, base_delay={self.base_delay}s, "
            f"request_timeout={self.request_timeout}s, "
            f"connect_timeout={self.connect_timeout}s, "
            f"queue_db_path={self.queue_db_path}, "
            f"token_file={'set' if self.token_file else 'in-memory'}, "
            f"fail_fast_structural={self.fail_fast_structural}"
        )


def _format_errors(e: ValidationError) -> str:
    errors = []
    for error in e.errors():
        field = '.'.join(str(loc) for loc in error['loc'])
        errors.append(f"{field}: {error['msg']}")
    return '; '.join(errors)


def validate_config(config_dict: dict) -> tuple[Optional[SyncConfig], Optional[str]]:
    """
    Validate configuration dictionary and return SyncConfig or error message.

    Args:
        config_dict: Dictionary containing configuration values

    Returns:
        Tuple of (SyncConfig, None) on success,
        or (None, error_message) on validation failure
    """
    try:
        config = SyncConfig(**config_dict)
        return (config, None)
    except ValidationError as e:
        return (None, _format_errors(e))


def load_config(yaml_path: Optional[str] = None) -> SyncConfig:
    """
    Load configuration from the environment and an optional YAML file.

    Args:
        yaml_path: YAML file with settings keys at top level. A missing
                   file is treated as empty.

    Raises:
        ConfigError: If any value fails validation
    """
    settings_cls = SyncConfig
    if yaml_path:
        class _YamlSyncConfig(SyncConfig):
            model_config = SettingsConfigDict(
                env_prefix='KINEX_SYNC_',
                extra='ignore',
                yaml_file=yaml_path,
                yaml_file_encoding='utf-8',
            )
        settings_cls = _YamlSyncConfig

    try:
        return settings_cls()
    except ValidationError as e:
        raise ConfigError(f"Invalid sync configuration: {_format_errors(e)}") from e


__all__ = ['SyncConfig', 'ConfigError', 'validate_config', 'load_config', 'ValidationError']

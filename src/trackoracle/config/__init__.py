"""Application configuration helpers."""

from __future__ import annotations

from .blockfrost import LedgerConfig, get_ledger_config
from .env import bool_env_var, int_env_var, optional_env_var, require_env_vars
from .errors import (
    ConfigurationError,
    InvalidConfigurationError,
    MissingConfigurationError,
)
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .oracle import (
    SigningConfig,
    get_oracle_identity,
    get_reconciliation_policy,
    get_signing_config,
)
from .schedule import ScheduleConfig, get_schedule_config, normalize_cron_expression
from .shippo import ShippoConfig, get_shippo_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .trp import TrpConfig, get_trp_config

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "InvalidConfigurationError",
    "LedgerConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "ScheduleConfig",
    "ShippoConfig",
    "SigningConfig",
    "StorageConfig",
    "TrpConfig",
    "bool_env_var",
    "configure_logging",
    "get_database_config",
    "get_ledger_config",
    "get_oracle_identity",
    "get_reconciliation_policy",
    "get_schedule_config",
    "get_shippo_config",
    "get_signing_config",
    "get_storage_config",
    "get_trp_config",
    "int_env_var",
    "normalize_cron_expression",
    "optional_env_var",
    "require_env_vars",
]

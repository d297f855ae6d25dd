"""Ledger indexer (Blockfrost-compatible) configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, require_env_vars
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy

BLOCKFROST_TIMEOUT_SECONDS = 20.0


def _is_confirmed_transaction(payload: object) -> bool:
    # only `/txs/{hash}` payloads of included transactions are immutable
    return isinstance(payload, dict) and "block" in payload and "hash" in payload


@dataclass(frozen=True, slots=True)
class LedgerConfig:
    """Holds the ledger indexer endpoint and the monitored validator address."""

    validator_address: str
    resilience: ResilienceConfig


def get_ledger_config(*, resilience: ResilienceConfig | None = None) -> LedgerConfig:
    values = require_env_vars(("BLOCKFROST_URL", "VALIDATOR_ADDRESS"))
    project_id = optional_env_var("BLOCKFROST_PROJECT_ID")
    headers = {"project_id": project_id} if project_id else None
    return LedgerConfig(
        validator_address=values["VALIDATOR_ADDRESS"],
        resilience=resilience
        or ResilienceConfig(
            name="blockfrost",
            base_url=values["BLOCKFROST_URL"].rstrip("/"),
            timeout_seconds=BLOCKFROST_TIMEOUT_SECONDS,
            retry=RetryPolicy(total=3),
            ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
            cache=CacheConfig(backend="memory", should_cache=_is_confirmed_transaction),
            default_headers=headers,
        ),
    )

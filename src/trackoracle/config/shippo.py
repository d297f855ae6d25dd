"""Shippo tracking API configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

SHIPPO_BASE_URL = "https://api.goshippo.com"
SHIPPO_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True, slots=True)
class ShippoConfig:
    """Holds Shippo API configuration values."""

    api_key: str
    resilience: ResilienceConfig


def get_shippo_config(*, resilience: ResilienceConfig | None = None) -> ShippoConfig:
    values = require_env_vars(("SHIPPO_API_KEY",))
    api_key = values["SHIPPO_API_KEY"]
    return ShippoConfig(
        api_key=api_key,
        resilience=resilience
        or ResilienceConfig(
            name="shippo",
            base_url=SHIPPO_BASE_URL,
            timeout_seconds=SHIPPO_TIMEOUT_SECONDS,
            retry=RetryPolicy(total=2),
            ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
            default_headers={"Authorization": f"ShippoToken {api_key}"},
        ),
    )

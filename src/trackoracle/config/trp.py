"""Transaction resolver protocol (TRP) configuration values."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .env import optional_env_var, require_env_vars
from .errors import InvalidConfigurationError
from .http_resilience import ResilienceConfig, RetryPolicy

DEFAULT_TIR_VERSION = "v1beta0"
TRP_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True, slots=True)
class TrpConfig:
    """Endpoint and compiled close-shipment intent for the TRP resolver."""

    tir_hex: str
    tir_version: str
    resilience: ResilienceConfig


def _read_tir(path: Path) -> str:
    try:
        content = path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise InvalidConfigurationError("CLOSE_SHIPMENT_TIR", f"cannot read {path}: {exc}") from exc
    try:
        bytes.fromhex(content)
    except ValueError as exc:
        raise InvalidConfigurationError("CLOSE_SHIPMENT_TIR", f"{path} is not hex encoded") from exc
    return content


def get_trp_config(*, resilience: ResilienceConfig | None = None) -> TrpConfig:
    values = require_env_vars(("TRP_URL", "CLOSE_SHIPMENT_TIR"))
    api_key = optional_env_var("TRP_API_KEY")
    headers = {"dmtr-api-key": api_key} if api_key else None
    return TrpConfig(
        tir_hex=_read_tir(Path(values["CLOSE_SHIPMENT_TIR"]).expanduser()),
        tir_version=optional_env_var("TIR_VERSION") or DEFAULT_TIR_VERSION,
        resilience=resilience
        or ResilienceConfig(
            name="trp",
            base_url=values["TRP_URL"],
            timeout_seconds=TRP_TIMEOUT_SECONDS,
            # JSON-RPC resolution is side-effect free, so POST may be retried
            retry=RetryPolicy(total=2).also_retrying("POST"),
            default_headers=headers,
        ),
    )

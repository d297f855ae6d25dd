"""Oracle identity, signing key and reconciliation policy configuration."""

from __future__ import annotations

from dataclasses import dataclass

from trackoracle.domain.model import OracleIdentity
from trackoracle.domain.reconciliation import ReconciliationPolicy
from trackoracle.domain.reconciliation.policy import (
    DEFAULT_MAX_CONFIRMATION_POLLS,
    DEFAULT_MAX_SUBMISSION_ATTEMPTS,
    DEFAULT_STATUS_WORKERS,
    DEFAULT_SUBMISSION_WORKERS,
)

from .env import int_env_var, require_env_vars
from .errors import InvalidConfigurationError

_SIGNING_KEY_BYTES = 32


def get_oracle_identity() -> OracleIdentity:
    values = require_env_vars(
        ("ORACLE_ADDRESS", "ORACLE_PKH", "ORACLE_PAYMENT_ADDRESS", "VALIDATOR_SCRIPT_REF")
    )
    return OracleIdentity(
        address=values["ORACLE_ADDRESS"],
        pkh=values["ORACLE_PKH"].lower(),
        payment_address=values["ORACLE_PAYMENT_ADDRESS"],
        validator_script_ref=values["VALIDATOR_SCRIPT_REF"],
    )


@dataclass(frozen=True, slots=True)
class SigningConfig:
    signing_key_hex: str

    def __repr__(self) -> str:
        return "SigningConfig(signing_key_hex=<redacted>)"


def get_signing_config() -> SigningConfig:
    value = require_env_vars(("ORACLE_SK",))["ORACLE_SK"]
    try:
        raw = bytes.fromhex(value)
    except ValueError:
        raise InvalidConfigurationError("ORACLE_SK", "must be hex encoded") from None
    if len(raw) != _SIGNING_KEY_BYTES:
        raise InvalidConfigurationError(
            "ORACLE_SK", f"must be a {_SIGNING_KEY_BYTES}-byte Ed25519 seed, got {len(raw)} bytes"
        )
    return SigningConfig(signing_key_hex=value.lower())


def get_reconciliation_policy() -> ReconciliationPolicy:
    return ReconciliationPolicy(
        status_workers=int_env_var("STATUS_WORKERS", DEFAULT_STATUS_WORKERS),
        submission_workers=int_env_var("SUBMISSION_WORKERS", DEFAULT_SUBMISSION_WORKERS),
        max_submission_attempts=int_env_var(
            "MAX_SUBMISSION_ATTEMPTS", DEFAULT_MAX_SUBMISSION_ATTEMPTS
        ),
        max_confirmation_polls=int_env_var(
            "MAX_CONFIRMATION_POLLS", DEFAULT_MAX_CONFIRMATION_POLLS
        ),
    )

from __future__ import annotations

from pathlib import Path  # noqa: TC003

import pytest

from trackoracle.config import (
    ConfigurationError,
    InvalidConfigurationError,
    MissingConfigurationError,
    bool_env_var,
    get_database_config,
    get_ledger_config,
    get_oracle_identity,
    get_reconciliation_policy,
    get_shippo_config,
    get_signing_config,
    get_storage_config,
    get_trp_config,
    int_env_var,
    optional_env_var,
    require_env_vars,
)
from trackoracle.domain.reconciliation.policy import DEFAULT_STATUS_WORKERS


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PRESENT_VAR", " value ")
    monkeypatch.delenv("MISSING_A", raising=False)
    monkeypatch.setenv("MISSING_B", "   ")

    assert require_env_vars(["PRESENT_VAR"]) == {"PRESENT_VAR": "value"}
    with pytest.raises(MissingConfigurationError, match="MISSING_A, MISSING_B"):
        require_env_vars(["PRESENT_VAR", "MISSING_B", "MISSING_A"])


def test_optional_env_var_treats_blank_as_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BLANK_VAR", "  ")

    assert optional_env_var("BLANK_VAR") is None


def test_int_env_var(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("WORKERS", raising=False)
    assert int_env_var("WORKERS", 4) == 4

    monkeypatch.setenv("WORKERS", "7")
    assert int_env_var("WORKERS", 4) == 7

    monkeypatch.setenv("WORKERS", "0")
    with pytest.raises(ConfigurationError, match=">= 1"):
        int_env_var("WORKERS", 4)

    monkeypatch.setenv("WORKERS", "many")
    with pytest.raises(ConfigurationError, match="integer"):
        int_env_var("WORKERS", 4)


def test_ledger_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BLOCKFROST_URL", "https://cardano-preview.blockfrost.io/api/v0/")
    monkeypatch.setenv("BLOCKFROST_PROJECT_ID", "preview123")
    monkeypatch.setenv("VALIDATOR_ADDRESS", "addr_test1validator")

    config = get_ledger_config()

    assert config.validator_address == "addr_test1validator"
    assert config.resilience.base_url == "https://cardano-preview.blockfrost.io/api/v0"
    assert config.resilience.default_headers == {"project_id": "preview123"}
    assert config.resilience.cache is not None


def test_ledger_config_without_project_id(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BLOCKFROST_URL", "http://localhost:3000")
    monkeypatch.delenv("BLOCKFROST_PROJECT_ID", raising=False)
    monkeypatch.setenv("VALIDATOR_ADDRESS", "addr_test1validator")

    assert get_ledger_config().resilience.default_headers is None


def test_shippo_config_sets_token_header(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHIPPO_API_KEY", "shippo_test_abc")

    config = get_shippo_config()

    assert config.resilience.default_headers == {"Authorization": "ShippoToken shippo_test_abc"}


def test_trp_config_reads_tir_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    tir = tmp_path / "close_shipment.tir"
    tir.write_text("deadbeef\n", encoding="utf-8")
    monkeypatch.setenv("TRP_URL", "https://trp.test")
    monkeypatch.setenv("CLOSE_SHIPMENT_TIR", str(tir))
    monkeypatch.delenv("TIR_VERSION", raising=False)
    monkeypatch.setenv("TRP_API_KEY", "dmtr_key")

    config = get_trp_config()

    assert config.tir_hex == "deadbeef"
    assert config.tir_version == "v1beta0"
    assert config.resilience.default_headers == {"dmtr-api-key": "dmtr_key"}
    assert "POST" in config.resilience.retry.allowed_methods


@pytest.mark.parametrize("content", [None, "not hex"])
def test_trp_config_rejects_bad_tir(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, content: str | None
) -> None:
    tir = tmp_path / "close_shipment.tir"
    if content is not None:
        tir.write_text(content, encoding="utf-8")
    monkeypatch.setenv("TRP_URL", "https://trp.test")
    monkeypatch.setenv("CLOSE_SHIPMENT_TIR", str(tir))

    with pytest.raises(ConfigurationError, match="CLOSE_SHIPMENT_TIR"):
        get_trp_config()


def test_oracle_identity(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ORACLE_ADDRESS", "addr_test1oracle")
    monkeypatch.setenv("ORACLE_PKH", "AB" * 28)
    monkeypatch.setenv("ORACLE_PAYMENT_ADDRESS", "addr_test1payment")
    monkeypatch.setenv("VALIDATOR_SCRIPT_REF", "cd" * 32 + "#0")

    identity = get_oracle_identity()

    assert identity.pkh == "ab" * 28
    assert identity.validator_script_ref.endswith("#0")


def test_signing_config_is_validated_and_redacted(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ORACLE_SK", "AA" * 32)

    config = get_signing_config()

    assert config.signing_key_hex == "aa" * 32
    assert "aa" not in repr(config)


@pytest.mark.parametrize(("value", "message"), [("zz" * 32, "hex"), ("aa" * 16, "32-byte")])
def test_signing_config_rejects_bad_keys(
    monkeypatch: pytest.MonkeyPatch, value: str, message: str
) -> None:
    monkeypatch.setenv("ORACLE_SK", value)

    with pytest.raises(ConfigurationError, match=message):
        get_signing_config()


def test_reconciliation_policy_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("STATUS_WORKERS", raising=False)
    monkeypatch.setenv("SUBMISSION_WORKERS", "3")
    monkeypatch.setenv("MAX_SUBMISSION_ATTEMPTS", "5")
    monkeypatch.setenv("MAX_CONFIRMATION_POLLS", "2")

    policy = get_reconciliation_policy()

    assert policy.status_workers == DEFAULT_STATUS_WORKERS
    assert policy.submission_workers == 3
    assert policy.max_submission_attempts == 5
    assert policy.max_confirmation_polls == 2


def test_bool_env_var(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("FLAG", raising=False)
    assert bool_env_var("FLAG") is False
    assert bool_env_var("FLAG", default=True) is True

    monkeypatch.setenv("FLAG", "Yes")
    assert bool_env_var("FLAG") is True

    monkeypatch.setenv("FLAG", "maybe")
    with pytest.raises(InvalidConfigurationError) as excinfo:
        bool_env_var("FLAG")
    assert excinfo.value.variable == "FLAG"


def test_database_defaults_to_sqlite_in_data_dir(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("TRACKORACLE_DATA_DIR", str(tmp_path / "state"))
    monkeypatch.delenv("DATABASE_URI", raising=False)
    monkeypatch.setenv("DATABASE_ECHO", "true")

    config = get_database_config()

    assert config.uri == f"sqlite+pysqlite:///{(tmp_path / 'state').resolve()}/reconciliation.db"
    assert config.echo
    assert get_storage_config().http_cache_path().parent.is_dir()


def test_database_uri_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "postgresql://oracle@db/oracle")
    monkeypatch.delenv("DATABASE_ECHO", raising=False)

    assert get_database_config().uri == "postgresql://oracle@db/oracle"

from __future__ import annotations

import cbor2

from trackoracle.adapters.blockfrost import (
    UtxoPayload,
    decode_tracking_datum,
    parse_tracking_record,
)
from trackoracle.adapters.blockfrost.translator import render_address
from trackoracle.domain.model import RecordRef
from tests.support.blockfrost import (
    ENTERPRISE_MAINNET,
    ENTERPRISE_TESTNET,
    tracking_datum_hex,
    utxo_payload,
)


def test_render_address_uses_network_prefix() -> None:
    testnet = render_address(ENTERPRISE_TESTNET)
    mainnet = render_address(ENTERPRISE_MAINNET)

    assert testnet is not None
    assert testnet.startswith("addr_test1")
    assert mainnet is not None
    assert mainnet.startswith("addr1")


def test_render_address_rejects_byron_and_short_input() -> None:
    assert render_address(bytes([0x82]) + bytes(28)) is None
    assert render_address(b"\x60") is None


def test_decode_tracking_datum() -> None:
    datum = decode_tracking_datum(tracking_datum_hex())

    assert datum is not None
    assert datum.carrier == "usps"
    assert datum.tracking_number == "TEST123"
    assert datum.outbox_address == render_address(ENTERPRISE_TESTNET)


def test_decode_tracking_datum_rejects_other_shapes() -> None:
    assert decode_tracking_datum("zz") is None
    assert decode_tracking_datum(cbor2.dumps([b"usps"]).hex()) is None
    assert decode_tracking_datum(tracking_datum_hex(tag=122)) is None
    assert decode_tracking_datum(cbor2.dumps(cbor2.CBORTag(121, [b"usps", b"x"])).hex()) is None
    assert decode_tracking_datum(tracking_datum_hex(carrier=b"\xff\xfe")) is None
    assert decode_tracking_datum(tracking_datum_hex(address=b"\x82" + bytes(28))) is None


def test_parse_tracking_record() -> None:
    record = parse_tracking_record(UtxoPayload.model_validate(utxo_payload()))

    assert record is not None
    assert record.ref == RecordRef(tx_hash="ab" * 32, output_index=1)
    assert record.carrier == "usps"
    assert record.tracking_number == "TEST123"
    assert record.deposited_lovelace == 5_000_000


def test_parse_tracking_record_skips_unusable_outputs() -> None:
    with_script = UtxoPayload.model_validate(utxo_payload(reference_script_hash="ee" * 28))
    without_datum = UtxoPayload.model_validate(utxo_payload(inline_datum=None))
    foreign_datum = UtxoPayload.model_validate(utxo_payload(inline_datum=cbor2.dumps(42).hex()))

    assert parse_tracking_record(with_script) is None
    assert parse_tracking_record(without_datum) is None
    assert parse_tracking_record(foreign_datum) is None

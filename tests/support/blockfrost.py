"""Blockfrost payload builders shared by adapter tests."""

from __future__ import annotations

import cbor2

ENTERPRISE_TESTNET = bytes([0x60]) + bytes(range(28))
ENTERPRISE_MAINNET = bytes([0x61]) + bytes(range(28))


def tracking_datum_hex(
    carrier: bytes = b"usps",
    tracking_number: bytes = b"TEST123",
    address: bytes = ENTERPRISE_TESTNET,
    *,
    tag: int = 121,
) -> str:
    return cbor2.dumps(cbor2.CBORTag(tag, [carrier, tracking_number, address])).hex()


def utxo_payload(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "address": "addr_test1validator",
        "tx_hash": "AB" * 32,
        "output_index": 1,
        "amount": [
            {"unit": "lovelace", "quantity": "5000000"},
            {"unit": "ff" * 28 + "746f6b656e", "quantity": "1"},
        ],
        "block": "cd" * 32,
        "data_hash": None,
        "inline_datum": tracking_datum_hex(),
        "reference_script_hash": None,
    }
    payload.update(overrides)
    return payload

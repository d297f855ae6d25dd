"""Translate Blockfrost outputs into tracking records."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

import cbor2
from bech32 import bech32_encode, convertbits

from trackoracle.domain.model import RecordRef, TrackingRecord

if TYPE_CHECKING:
    from .schema import UtxoPayload

log = getLogger(__name__)

# Plutus `Constr 0` is serialized as CBOR tag 121.
CONSTR_0_TAG = 121

_PAYMENT_ADDRESS_TYPES = range(8)
_STAKE_ADDRESS_TYPES = (0b1110, 0b1111)


@dataclass(frozen=True, slots=True)
class TrackingDatum:
    carrier: str
    tracking_number: str
    outbox_address: str


def render_address(raw: bytes) -> str | None:
    """Render a Shelley address as bech32; ``None`` for Byron or malformed bytes."""

    if len(raw) < 2:
        return None
    header = raw[0]
    address_type, network = header >> 4, header & 0x0F
    if address_type in _PAYMENT_ADDRESS_TYPES:
        prefix = "addr"
    elif address_type in _STAKE_ADDRESS_TYPES:
        prefix = "stake"
    else:
        return None
    hrp = prefix if network == 1 else f"{prefix}_test"
    data = convertbits(raw, 8, 5)
    if data is None:
        return None
    return bech32_encode(hrp, data)


def decode_tracking_datum(datum_hex: str) -> TrackingDatum | None:
    """Decode ``Constr 0 [carrier, tracking_number, outbox_address]`` from inline datum CBOR."""

    try:
        datum = cbor2.loads(bytes.fromhex(datum_hex))
    except (ValueError, cbor2.CBORDecodeError):
        return None

    if not isinstance(datum, cbor2.CBORTag) or datum.tag != CONSTR_0_TAG:
        return None
    fields = datum.value
    if not isinstance(fields, list) or len(fields) < 3:
        return None
    carrier, tracking_number, address = fields[:3]
    if not all(isinstance(item, bytes) for item in (carrier, tracking_number, address)):
        return None

    try:
        carrier_text = carrier.decode("utf-8")
        tracking_text = tracking_number.decode("utf-8")
    except UnicodeDecodeError:
        return None
    outbox = render_address(address)
    if not carrier_text or not tracking_text or outbox is None:
        return None
    return TrackingDatum(carrier=carrier_text, tracking_number=tracking_text, outbox_address=outbox)


def parse_tracking_record(utxo: UtxoPayload) -> TrackingRecord | None:
    ref = RecordRef(tx_hash=utxo.tx_hash.lower(), output_index=utxo.output_index)
    if utxo.reference_script_hash is not None:
        log.debug("Skipping %s: output holds a reference script", ref)
        return None
    if utxo.inline_datum is None:
        log.debug("Skipping %s: no inline datum", ref)
        return None

    datum = decode_tracking_datum(utxo.inline_datum)
    if datum is None:
        log.debug("Skipping %s: inline datum is not a tracking datum", ref)
        return None

    return TrackingRecord(
        ref=ref,
        carrier=datum.carrier,
        tracking_number=datum.tracking_number,
        outbox_address=datum.outbox_address,
        deposited_lovelace=utxo.lovelace,
    )

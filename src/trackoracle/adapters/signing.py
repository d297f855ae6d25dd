"""Ed25519 signing of resolved transactions.

The resolver hands back a complete transaction whose witness set lacks the oracle's
verification-key witness. Signing adds ``[vkey, signature]`` under witness-set key 0
and leaves every other byte alone: the transaction body is hashed as serialized and
the redeemers and datums are covered by the script data hash, so neither may be
re-encoded.

For that reason the transaction is not round-tripped through ``cbor2``, which would
normalize indefinite-length items and integer widths. ``item_end`` walks the raw
bytes to find the body and witness-set spans instead. Only the vkey witness entry is
decoded and rebuilt. It keeps the form it arrived in: a tag 258 set (Conway) or a
plain list (earlier eras). A witness set sent as an indefinite map is rewritten with a
definite head, and its other entries are copied verbatim. Re-signing a transaction
that already carries our key returns it unchanged.
"""

from __future__ import annotations

import hashlib
from logging import getLogger
from typing import TYPE_CHECKING

import cbor2
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from trackoracle.domain.errors import SigningError
from trackoracle.domain.model import SignedTransaction

if TYPE_CHECKING:
    from trackoracle.domain.model import SignableTransaction

log = getLogger(__name__)

VKEY_WITNESS_KEY = 0
# Conway serializes witness lists as tagged sets.
SET_TAG = 258

_MAJOR_MAP = 5
_BREAK = 0xFF


class CborScanError(ValueError):
    """Raised when bytes are not a well-formed CBOR item."""


def _read_head(data: bytes, offset: int) -> tuple[int, int | None, int]:
    """Return ``(major type, argument, next offset)``; the argument is ``None`` for indefinite."""

    if offset >= len(data):
        raise CborScanError("truncated CBOR item")
    initial = data[offset]
    major, info = initial >> 5, initial & 0x1F
    offset += 1
    if info < 24:
        return major, info, offset
    if info == 31:
        if major in {0, 1, 6}:
            raise CborScanError(f"indefinite length not allowed for major type {major}")
        return major, None, offset
    if info > 27:
        raise CborScanError(f"reserved additional information {info}")
    size = 1 << (info - 24)
    if offset + size > len(data):
        raise CborScanError("truncated CBOR head")
    return major, int.from_bytes(data[offset : offset + size], "big"), offset + size


def item_end(data: bytes, offset: int = 0) -> int:
    """Return the offset just past the CBOR item starting at ``offset``."""

    major, argument, offset = _read_head(data, offset)

    if major in {0, 1}:
        return offset
    if major in {2, 3}:
        if argument is None:
            while data[offset : offset + 1] != bytes([_BREAK]):
                chunk_major, chunk_length, offset = _read_head(data, offset)
                if chunk_major != major or chunk_length is None:
                    raise CborScanError("invalid chunk in indefinite string")
                offset += chunk_length
            return offset + 1
        end = offset + argument
        if end > len(data):
            raise CborScanError("truncated string")
        return end
    if major in {4, _MAJOR_MAP}:
        if argument is None:
            while data[offset : offset + 1] != bytes([_BREAK]):
                if offset >= len(data):
                    raise CborScanError("unterminated indefinite container")
                offset = item_end(data, offset)
            return offset + 1
        for _ in range(argument * (2 if major == _MAJOR_MAP else 1)):
            offset = item_end(data, offset)
        return offset
    if major == 6:
        return item_end(data, offset)
    # major 7: simple values and floats carry no nested items
    if argument is None:
        raise CborScanError("unexpected break")
    return offset


def _encode_head(major: int, argument: int) -> bytes:
    if argument < 24:
        return bytes([(major << 5) | argument])
    for info, size in ((24, 1), (25, 2), (26, 4), (27, 8)):
        if argument < 1 << (8 * size):
            return bytes([(major << 5) | info]) + argument.to_bytes(size, "big")
    raise CborScanError(f"argument {argument} too large")


def _map_entries(data: bytes) -> list[tuple[bytes, bytes]]:
    major, count, offset = _read_head(data, 0)
    if major != _MAJOR_MAP:
        raise CborScanError("witness set is not a map")
    entries: list[tuple[bytes, bytes]] = []
    while True:
        if count is None:
            if data[offset : offset + 1] == bytes([_BREAK]):
                break
        elif len(entries) == count:
            break
        key_end = item_end(data, offset)
        value_end = item_end(data, key_end)
        entries.append((data[offset:key_end], data[key_end:value_end]))
        offset = value_end
    return entries


def _with_vkey_witness(existing: bytes | None, witness: list[bytes]) -> bytes:
    if existing is None:
        return cbor2.dumps(cbor2.CBORTag(SET_TAG, [witness]))

    decoded = cbor2.loads(existing)
    if isinstance(decoded, (set, frozenset)):
        # cbor2 decodes tag 258 natively, turning the inner arrays into tuples
        witnesses = [list(item) for item in decoded]
        tagged = True
    elif isinstance(decoded, cbor2.CBORTag) and decoded.tag == SET_TAG:
        witnesses = list(decoded.value)
        tagged = True
    elif isinstance(decoded, list):
        witnesses = decoded
        tagged = False
    else:
        raise CborScanError("vkey witnesses are neither a list nor a set")

    if any(item[0] == witness[0] for item in witnesses):
        # idempotent: the resolver already asked for and got our witness
        return existing
    witnesses.append(witness)
    return cbor2.dumps(cbor2.CBORTag(SET_TAG, witnesses) if tagged else witnesses)


def add_vkey_witness(tx_cbor: bytes, witness: list[bytes]) -> tuple[bytes, bytes]:
    """Splice ``witness`` into a serialized transaction.

    Returns ``(body bytes, signed transaction bytes)``.
    """

    major, count, offset = _read_head(tx_cbor, 0)
    if major != 4 or count is None or count < 2:
        raise CborScanError("transaction is not a definite array")
    body_end = item_end(tx_cbor, offset)
    witness_end = item_end(tx_cbor, body_end)

    body = tx_cbor[offset:body_end]
    entries = _map_entries(tx_cbor[body_end:witness_end])
    vkey_key = cbor2.dumps(VKEY_WITNESS_KEY)

    rebuilt: list[tuple[bytes, bytes]] = []
    spliced = False
    for key, value in entries:
        if key == vkey_key:
            value = _with_vkey_witness(value, witness)
            spliced = True
        rebuilt.append((key, value))
    if not spliced:
        rebuilt.insert(0, (vkey_key, _with_vkey_witness(None, witness)))

    witness_set = _encode_head(_MAJOR_MAP, len(rebuilt)) + b"".join(
        key + value for key, value in rebuilt
    )
    return body, tx_cbor[:body_end] + witness_set + tx_cbor[witness_end:]


def load_signing_key(seed_hex: str) -> Ed25519PrivateKey:
    try:
        raw = bytes.fromhex(seed_hex.strip())
    except ValueError as exc:
        raise ValueError("Signing key must be hex encoded") from exc
    if len(raw) != 32:
        raise ValueError("Invalid Ed25519 signing key length")
    return Ed25519PrivateKey.from_private_bytes(raw)


class Ed25519TransactionSigner:
    """Sign transaction hashes with the oracle's Ed25519 key."""

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key = private_key
        self._public_key = private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)

    @classmethod
    def from_hex(cls, seed_hex: str) -> Ed25519TransactionSigner:
        return cls(load_signing_key(seed_hex))

    @property
    def public_key(self) -> bytes:
        return self._public_key

    def sign(self, transaction: SignableTransaction) -> SignedTransaction:
        try:
            tx_cbor = bytes.fromhex(transaction.cbor_hex)
            tx_hash = bytes.fromhex(transaction.tx_hash)
        except ValueError as exc:
            raise SigningError(f"Transaction {transaction.tx_hash} is not hex encoded") from exc

        signature = self._private_key.sign(tx_hash)
        try:
            body, signed = add_vkey_witness(tx_cbor, [self._public_key, signature])
        except (CborScanError, cbor2.CBORDecodeError) as exc:
            raise SigningError(f"Cannot add witness to {transaction.tx_hash}: {exc}") from exc

        if hashlib.blake2b(body, digest_size=32).digest() != tx_hash:
            raise SigningError(
                f"Resolver hash {transaction.tx_hash} does not match the transaction body"
            )

        log.debug("Signed transaction %s", transaction.tx_hash)
        return SignedTransaction(cbor=signed, tx_hash=transaction.tx_hash.lower())

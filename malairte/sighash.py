"""Transaction model and the signature-hash algorithms used to sign and verify inputs.

Three sighash families are supported, each prefixed with a 4-byte chain id so a
signature made for one network does not verify on another:

* legacy SIGHASH_ALL (double SHA-256),
* BIP-143 SegWit v0 (double SHA-256, commits to the spent amount),
* BIP-341/342 taproot key-path and script-path (tagged SHA-256).
"""

from __future__ import annotations

import hashlib
import struct
from collections.abc import Sequence
from dataclasses import dataclass, field

from malairte.blockfilter import encode_varint

SIGHASH_DEFAULT = 0x00
SIGHASH_ALL = 0x01

_MASK64 = (1 << 64) - 1


@dataclass
class OutPoint:
    """Reference to one output of an earlier transaction."""

    txid: bytes = bytes(32)
    index: int = 0


@dataclass
class TxInput:
    """A transaction input: the outpoint spent, its unlocking data and sequence."""

    previous_output: OutPoint = field(default_factory=OutPoint)
    script_sig: bytes = b""
    sequence: int = 0xFFFFFFFF
    witness: list[bytes] = field(default_factory=list)


@dataclass
class TxOutput:
    """A transaction output: a value in atoms and its locking script."""

    value: int = 0
    script_pubkey: bytes = b""


@dataclass
class Transaction:
    """A transaction with its inputs, outputs, version and lock time."""

    version: int = 1
    inputs: list[TxInput] = field(default_factory=list)
    outputs: list[TxOutput] = field(default_factory=list)
    lock_time: int = 0


def hash256(data: bytes) -> bytes:
    """Return SHA-256(SHA-256(data))."""
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def tagged_hash(tag: str, data: bytes) -> bytes:
    """Return the BIP-340 tagged hash SHA-256(SHA-256(tag) || SHA-256(tag) || data)."""
    tag_digest = hashlib.sha256(tag.encode()).digest()
    return hashlib.sha256(tag_digest + tag_digest + data).digest()


# ── Serialization helpers ────────────────────────────────────────────────────


def _u32(value: int) -> bytes:
    return struct.pack("<I", value & 0xFFFFFFFF)


def _u64(value: int) -> bytes:
    return struct.pack("<Q", value & _MASK64)


def _var_bytes(data: bytes) -> bytes:
    return encode_varint(len(data)) + bytes(data)


def _outpoint(out: OutPoint) -> bytes:
    return bytes(out.txid) + _u32(out.index)


def _prevouts_bytes(tx: Transaction) -> bytes:
    return b"".join(_outpoint(i.previous_output) for i in tx.inputs)


def _sequences_bytes(tx: Transaction) -> bytes:
    return b"".join(_u32(i.sequence) for i in tx.inputs)


def _outputs_bytes(tx: Transaction) -> bytes:
    return b"".join(_u64(o.value) + _var_bytes(o.script_pubkey) for o in tx.outputs)


def _check_index(tx: Transaction, input_idx: int, what: str) -> None:
    if not 0 <= input_idx < len(tx.inputs):
        raise IndexError(f"{what}: input index {input_idx} out of range")


# ── Legacy ───────────────────────────────────────────────────────────────────


def calc_sig_hash(tx: Transaction, input_idx: int, subscript: bytes, chain_id: int) -> bytes:
    """Return the legacy SIGHASH_ALL digest for one input.

    The input being signed carries ``subscript`` in place of its scriptSig;
    every other input carries an empty script.
    """
    parts = [_u32(chain_id), _u32(tx.version), encode_varint(len(tx.inputs))]
    for i, txin in enumerate(tx.inputs):
        parts.append(_outpoint(txin.previous_output))
        parts.append(_var_bytes(subscript) if i == input_idx else b"\x00")
        parts.append(_u32(txin.sequence))
    parts.append(encode_varint(len(tx.outputs)))
    parts.append(_outputs_bytes(tx))
    parts.append(_u32(tx.lock_time))
    parts.append(_u32(SIGHASH_ALL))
    return hash256(b"".join(parts))


# ── BIP-143 ──────────────────────────────────────────────────────────────────


def calc_sig_hash_witness_v0(
    tx: Transaction, input_idx: int, script_code: bytes, amount: int, chain_id: int
) -> bytes:
    """Return the BIP-143 SIGHASH_ALL digest for a SegWit v0 input.

    The spent ``amount`` is committed to, so a signature does not verify
    against a differently valued output.
    """
    _check_index(tx, input_idx, "witness v0 sighash")
    txin = tx.inputs[input_idx]
    preimage = b"".join([
        _u32(chain_id),
        _u32(tx.version),
        hash256(_prevouts_bytes(tx)),
        hash256(_sequences_bytes(tx)),
        _outpoint(txin.previous_output),
        _var_bytes(script_code),
        _u64(amount),
        _u32(txin.sequence),
        hash256(_outputs_bytes(tx)),
        _u32(tx.lock_time),
        _u32(SIGHASH_ALL),
    ])
    return hash256(preimage)


# ── BIP-341 / BIP-342 ────────────────────────────────────────────────────────


def _taproot_preimage(
    tx: Transaction,
    input_idx: int,
    prevout_scripts: Sequence[bytes],
    prevout_amounts: Sequence[int],
    hash_type: int,
    chain_id: int,
    spend_type: int,
    what: str,
) -> bytes:
    _check_index(tx, input_idx, what)
    if len(prevout_scripts) != len(tx.inputs) or len(prevout_amounts) != len(tx.inputs):
        raise ValueError(f"{what}: prevout vectors must match input count")
    if hash_type not in (SIGHASH_DEFAULT, SIGHASH_ALL):
        raise ValueError(f"{what}: unsupported hash type 0x{hash_type:02x}")

    sha = lambda data: hashlib.sha256(data).digest()  # noqa: E731
    return b"".join([
        _u32(chain_id),
        b"\x00",  # epoch
        bytes([hash_type]),
        _u32(tx.version),
        _u32(tx.lock_time),
        sha(_prevouts_bytes(tx)),
        sha(b"".join(_u64(a) for a in prevout_amounts)),
        sha(b"".join(_var_bytes(s) for s in prevout_scripts)),
        sha(_sequences_bytes(tx)),
        sha(_outputs_bytes(tx)),
        bytes([spend_type]),
        _u32(input_idx),
    ])


def calc_taproot_key_spend_sig_hash(
    tx: Transaction,
    input_idx: int,
    prevout_scripts: Sequence[bytes],
    prevout_amounts: Sequence[int],
    hash_type: int,
    chain_id: int,
) -> bytes:
    """Return the BIP-341 key-path digest for one input.

    Raises IndexError for a bad input index and ValueError when the prevout
    vectors do not match the inputs or the hash type is not DEFAULT or ALL.
    """
    preimage = _taproot_preimage(
        tx, input_idx, prevout_scripts, prevout_amounts, hash_type, chain_id,
        0x00, "taproot sighash",
    )
    return tagged_hash("TapSighash", preimage)


def calc_tapscript_sig_hash(
    tx: Transaction,
    input_idx: int,
    prevout_scripts: Sequence[bytes],
    prevout_amounts: Sequence[int],
    hash_type: int,
    tap_leaf_hash: bytes,
    chain_id: int,
) -> bytes:
    """Return the BIP-342 script-path digest for one input and tapleaf."""
    if len(tap_leaf_hash) != 32:
        raise ValueError(f"tapleaf hash must be 32 bytes, got {len(tap_leaf_hash)}")
    preimage = _taproot_preimage(
        tx, input_idx, prevout_scripts, prevout_amounts, hash_type, chain_id,
        0x02, "tapscript sighash",
    )
    suffix = bytes(tap_leaf_hash) + b"\x00" + _u32(0xFFFFFFFF)
    return tagged_hash("TapSighash", preimage + suffix)
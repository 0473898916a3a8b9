"""Verification of standard pay-to-pubkey-hash spends, legacy and SegWit v0."""

from __future__ import annotations

import hashlib

from Crypto.Hash import RIPEMD160
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed

from malairte.params import OP_CHECKSIG, OP_DUP, OP_EQUALVERIFY, OP_HASH160, p2pkh_script
from malairte.sighash import (
    SIGHASH_ALL,
    Transaction,
    calc_sig_hash,
    calc_sig_hash_witness_v0,
)

OP_0 = 0x00
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
_MAX_DIRECT_PUSH = 0x4B


class ScriptError(ValueError):
    """Raised when a script is malformed or a spend fails verification."""


def hash160(data: bytes) -> bytes:
    """Return RIPEMD-160(SHA-256(data))."""
    return RIPEMD160.new(hashlib.sha256(data).digest()).digest()


def p2wpkh_script(pub_key_hash: bytes) -> bytes:
    """Return the native SegWit v0 pay-to-witness-pubkey-hash script."""
    if len(pub_key_hash) != 20:
        raise ValueError(f"pubkey hash must be 20 bytes, got {len(pub_key_hash)}")
    return bytes([OP_0, 20]) + bytes(pub_key_hash)


def _extract_p2pkh_hash(script: bytes) -> bytes | None:
    if (
        len(script) == 25
        and script[0] == OP_DUP
        and script[1] == OP_HASH160
        and script[2] == 20
        and script[23] == OP_EQUALVERIFY
        and script[24] == OP_CHECKSIG
    ):
        return bytes(script[3:23])
    return None


def _extract_p2wpkh_hash(script: bytes) -> bytes | None:
    if len(script) == 22 and script[0] == OP_0 and script[1] == 20:
        return bytes(script[2:22])
    return None


def read_data_push(script: bytes, pos: int) -> tuple[bytes, int]:
    """Read one data push at ``pos``; return the pushed bytes and bytes consumed.

    Supports direct pushes (0x01-0x4b), OP_PUSHDATA1 and OP_PUSHDATA2.
    """
    if pos >= len(script):
        raise ScriptError("script: unexpected end of data")
    op = script[pos]
    start = pos
    pos += 1
    if 0x01 <= op <= _MAX_DIRECT_PUSH:
        length = op
    elif op == OP_PUSHDATA1:
        if pos >= len(script):
            raise ScriptError("OP_PUSHDATA1: missing length byte")
        length = script[pos]
        pos += 1
    elif op == OP_PUSHDATA2:
        if pos + 2 > len(script):
            raise ScriptError("OP_PUSHDATA2: missing length bytes")
        length = int.from_bytes(script[pos:pos + 2], "little")
        pos += 2
    else:
        raise ScriptError(f"script: unsupported opcode 0x{op:02x} at offset {start}")
    if pos + length > len(script):
        raise ScriptError(f"script: push overflows script boundary (need {length} bytes)")
    return bytes(script[pos:pos + length]), pos + length - start


def parse_p2pkh_script_sig(script: bytes) -> tuple[bytes, bytes]:
    """Split a P2PKH scriptSig into (signature with hash type, compressed pubkey)."""
    try:
        sig, consumed = read_data_push(script, 0)
    except ScriptError as exc:
        raise ScriptError(f"sig push: {exc}") from exc
    try:
        pub_key, _ = read_data_push(script, consumed)
    except ScriptError as exc:
        raise ScriptError(f"pubkey push: {exc}") from exc
    if len(pub_key) != 33:
        raise ScriptError(f"expected 33-byte compressed pubkey, got {len(pub_key)} bytes")
    return sig, pub_key


def build_p2pkh_script_sig(sig: bytes, pub_key: bytes) -> bytes:
    """Return ``<der_sig + SIGHASH_ALL> <pubkey>`` as a P2PKH unlocking script."""
    sig_with_type = bytes(sig) + bytes([SIGHASH_ALL])
    if len(sig_with_type) > _MAX_DIRECT_PUSH or len(pub_key) > _MAX_DIRECT_PUSH:
        raise ValueError("signature or pubkey too long for a direct push")
    return (
        bytes([len(sig_with_type)]) + sig_with_type
        + bytes([len(pub_key)]) + bytes(pub_key)
    )


def ecdsa_verify(pub_key: bytes, digest: bytes, der_sig: bytes) -> bool:
    """Return True if ``der_sig`` is a valid secp256k1 signature of ``digest``."""
    try:
        key = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), bytes(pub_key))
        key.verify(bytes(der_sig), bytes(digest), ec.ECDSA(Prehashed(hashes.SHA256())))
    except (InvalidSignature, ValueError, TypeError):
        return False
    return True


def _split_sighash(sig: bytes, label: str) -> bytes:
    if len(sig) < 2:
        raise ScriptError(f"{label}signature too short")
    if sig[-1] != SIGHASH_ALL:
        raise ScriptError(f"{label}unsupported sighash type 0x{sig[-1]:02x}")
    return sig[:-1]


def verify_p2pkh(
    script_sig: bytes, script_pubkey: bytes, tx: Transaction, input_idx: int, chain_id: int
) -> None:
    """Verify a legacy P2PKH spend; raise ScriptError if it does not hold."""
    try:
        sig, pub_key = parse_p2pkh_script_sig(script_sig)
    except ScriptError as exc:
        raise ScriptError(f"invalid P2PKH scriptSig: {exc}") from exc
    expected = _extract_p2pkh_hash(script_pubkey)
    if expected is None:
        raise ScriptError("malformed P2PKH scriptPubKey")
    if hash160(pub_key) != expected:
        raise ScriptError("pubkey hash mismatch")
    der_sig = _split_sighash(sig, "")
    digest = calc_sig_hash(tx, input_idx, script_pubkey, chain_id)
    if not ecdsa_verify(pub_key, digest, der_sig):
        raise ScriptError("invalid signature")


def verify_p2wpkh(
    script_sig: bytes,
    script_pubkey: bytes,
    tx: Transaction,
    input_idx: int,
    amount: int,
    chain_id: int,
) -> None:
    """Verify a SegWit v0 P2WPKH spend; raise ScriptError if it does not hold."""
    if script_sig:
        raise ScriptError("P2WPKH input must have empty scriptSig")
    expected = _extract_p2wpkh_hash(script_pubkey)
    if expected is None:
        raise ScriptError("malformed P2WPKH scriptPubKey")
    witness = tx.inputs[input_idx].witness
    if len(witness) != 2:
        raise ScriptError(f"P2WPKH witness must have 2 items, got {len(witness)}")
    sig, pub_key = witness
    if len(pub_key) != 33:
        raise ScriptError(
            f"P2WPKH pubkey must be 33-byte compressed, got {len(pub_key)} bytes"
        )
    if hash160(pub_key) != expected:
        raise ScriptError("P2WPKH pubkey hash mismatch")
    der_sig = _split_sighash(sig, "P2WPKH ")
    script_code = p2pkh_script(expected)
    digest = calc_sig_hash_witness_v0(tx, input_idx, script_code, amount, chain_id)
    if not ecdsa_verify(pub_key, digest, der_sig):
        raise ScriptError("invalid P2WPKH signature")
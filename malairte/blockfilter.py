"""Compact block filters (BIP-158 basic variant) and BIP-157 filter headers.

A filter is a Golomb-coded set over SipHash-2-4 digests of every output
script in a block plus every script spent by its inputs. Light clients test
their own scripts against it without downloading the block.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Sequence

FILTER_BITS_P = 19
FILTER_M = 784931

_MASK64 = (1 << 64) - 1
_MAX_QUOTIENT = 1 << 24


# ── Bit-level I/O ────────────────────────────────────────────────────────────


class BitWriter:
    """Accumulates bits MSB-first into a byte string."""

    def __init__(self) -> None:
        self._buf = bytearray()
        self._nbits = 0

    def write_bit(self, bit: int) -> None:
        """Append one bit."""
        if self._nbits == 0:
            self._buf.append(0)
        self._buf[-1] |= (bit & 1) << (7 - self._nbits)
        self._nbits = (self._nbits + 1) % 8

    def write_bits(self, value: int, count: int) -> None:
        """Append the low ``count`` bits of ``value``, most significant first."""
        for shift in range(count - 1, -1, -1):
            self.write_bit((value >> shift) & 1)

    def getvalue(self) -> bytes:
        """Return the bytes written so far; a partial last byte is zero-padded."""
        return bytes(self._buf)


class BitReader:
    """Reads bits MSB-first from a byte string."""

    def __init__(self, data: bytes) -> None:
        self._buf = bytes(data)
        self._pos = 0
        self._nbits = 0

    def read_bit(self) -> int:
        """Return the next bit; raises ValueError when the data is exhausted."""
        if self._pos >= len(self._buf):
            raise ValueError("bit reader: out of bits")
        bit = (self._buf[self._pos] >> (7 - self._nbits)) & 1
        self._nbits += 1
        if self._nbits == 8:
            self._nbits = 0
            self._pos += 1
        return bit

    def read_bits(self, count: int) -> int:
        """Return the next ``count`` bits as an unsigned integer."""
        value = 0
        for _ in range(count):
            value = (value << 1) | self.read_bit()
        return value


# ── Variable-length integers ─────────────────────────────────────────────────


def encode_varint(value: int) -> bytes:
    """Encode an unsigned integer in the compact-size varint format."""
    if value < 0 or value > _MASK64:
        raise ValueError(f"varint out of range: {value}")
    if value < 0xFD:
        return bytes([value])
    if value <= 0xFFFF:
        return b"\xfd" + value.to_bytes(2, "little")
    if value <= 0xFFFFFFFF:
        return b"\xfe" + value.to_bytes(4, "little")
    return b"\xff" + value.to_bytes(8, "little")


def decode_varint(data: bytes) -> tuple[int, int]:
    """Decode a compact-size varint; return the value and the bytes consumed."""
    if not data:
        raise ValueError("varint: empty input")
    prefix = data[0]
    width = {0xFD: 2, 0xFE: 4, 0xFF: 8}.get(prefix)
    if width is None:
        return prefix, 1
    if len(data) < 1 + width:
        raise ValueError("varint: truncated input")
    return int.from_bytes(data[1:1 + width], "little"), 1 + width


# ── Golomb-Rice coding ───────────────────────────────────────────────────────


def encode_golomb_rice(writer: BitWriter, value: int, p: int) -> None:
    """Write ``value`` as a unary quotient, a 0 bit, then a ``p``-bit remainder."""
    for _ in range(value >> p):
        writer.write_bit(1)
    writer.write_bit(0)
    writer.write_bits(value & ((1 << p) - 1), p)


def decode_golomb_rice(reader: BitReader, p: int) -> int:
    """Read one Golomb-Rice coded value with parameter ``p``."""
    quotient = 0
    while reader.read_bit():
        quotient += 1
        if quotient > _MAX_QUOTIENT:
            raise ValueError("golomb-rice quotient too large")
    remainder = reader.read_bits(p)
    return (quotient << p) | remainder


# ── SipHash-2-4 ──────────────────────────────────────────────────────────────


def _rotl(value: int, bits: int) -> int:
    return ((value << bits) | (value >> (64 - bits))) & _MASK64


def _sip_round(v0: int, v1: int, v2: int, v3: int) -> tuple[int, int, int, int]:
    v0 = (v0 + v1) & _MASK64
    v1 = _rotl(v1, 13) ^ v0
    v0 = _rotl(v0, 32)
    v2 = (v2 + v3) & _MASK64
    v3 = _rotl(v3, 16) ^ v2
    v0 = (v0 + v3) & _MASK64
    v3 = _rotl(v3, 21) ^ v0
    v2 = (v2 + v1) & _MASK64
    v1 = _rotl(v1, 17) ^ v2
    v2 = _rotl(v2, 32)
    return v0, v1, v2, v3


def siphash24(key: bytes, message: bytes) -> int:
    """Return the SipHash-2-4 digest of ``message`` under a 16-byte key."""
    if len(key) != 16:
        raise ValueError(f"siphash key must be 16 bytes, got {len(key)}")
    k0 = int.from_bytes(key[:8], "little")
    k1 = int.from_bytes(key[8:], "little")
    v0 = k0 ^ 0x736F6D6570736575
    v1 = k1 ^ 0x646F72616E646F6D
    v2 = k0 ^ 0x6C7967656E657261
    v3 = k1 ^ 0x7465646279746573

    full = len(message) // 8 * 8
    tail = message[full:].ljust(7, b"\x00") + bytes([len(message) & 0xFF])
    words = [message[i:i + 8] for i in range(0, full, 8)] + [tail]
    for word in words:
        m = int.from_bytes(word, "little")
        v3 ^= m
        v0, v1, v2, v3 = _sip_round(v0, v1, v2, v3)
        v0, v1, v2, v3 = _sip_round(v0, v1, v2, v3)
        v0 ^= m

    v2 ^= 0xFF
    for _ in range(4):
        v0, v1, v2, v3 = _sip_round(v0, v1, v2, v3)
    return v0 ^ v1 ^ v2 ^ v3


# ── Filters ──────────────────────────────────────────────────────────────────


def _map_to_range(digest: int, bound: int) -> int:
    """Map a 64-bit digest into [0, bound) by multiply-and-shift."""
    return (digest * (bound & _MASK64)) >> 64


def filter_key(block_hash: bytes) -> bytes:
    """Return the 16-byte SipHash key: the first 16 bytes of the block hash."""
    if len(block_hash) < 16:
        raise ValueError(f"block hash too short: {len(block_hash)} bytes")
    return bytes(block_hash[:16])


def build_block_filter(
    block_hash: bytes,
    output_scripts: Iterable[bytes],
    spent_scripts: Iterable[bytes] | None = None,
) -> bytes:
    """Build the compact filter for a block.

    ``output_scripts`` are the scriptPubKeys of every output in the block;
    ``spent_scripts`` are the scripts of the outputs its inputs consume.
    Empty scripts are ignored. Same inputs always yield the same bytes.
    """
    scripts = list(dict.fromkeys(
        bytes(s) for s in [*output_scripts, *(spent_scripts or ())] if s
    ))
    if not scripts:
        return b"\x00"

    key = filter_key(block_hash)
    bound = len(scripts) * FILTER_M
    values = sorted({_map_to_range(siphash24(key, s), bound) for s in scripts})

    writer = BitWriter()
    prev = 0
    for value in values:
        encode_golomb_rice(writer, value - prev, FILTER_BITS_P)
        prev = value
    return encode_varint(len(values)) + writer.getvalue()


def filter_hash(filter_bytes: bytes) -> bytes:
    """Return SHA-256 of a filter, the commitment a filter header references."""
    return hashlib.sha256(filter_bytes).digest()


def filter_header(filter_digest: bytes, prev_header: bytes) -> bytes:
    """Return SHA-256(filter_digest || prev_header); prev_header is zeros at genesis."""
    if len(filter_digest) != 32 or len(prev_header) != 32:
        raise ValueError("filter digest and previous header must be 32 bytes each")
    return hashlib.sha256(bytes(filter_digest) + bytes(prev_header)).digest()


def filter_match_any(filter_bytes: bytes, key: bytes, scripts: Sequence[bytes]) -> bool:
    """Return True if any script is (probably) in the filter.

    There are no false negatives; false positives occur at about 1/M per element.
    Raises ValueError for an empty or malformed filter.
    """
    if not filter_bytes:
        raise ValueError("filter is empty")
    count, consumed = decode_varint(filter_bytes)
    if count == 0:
        return False

    bound = count * FILTER_M
    targets = sorted(_map_to_range(siphash24(key, s), bound) for s in scripts)
    reader = BitReader(filter_bytes[consumed:])
    current = 0
    ti = 0
    for _ in range(count):
        if ti >= len(targets):
            break
        current = (current + decode_golomb_rice(reader, FILTER_BITS_P)) & _MASK64
        while ti < len(targets) and targets[ti] < current:
            ti += 1
        if ti < len(targets) and targets[ti] == current:
            return True
    return False
"""Consensus parameters for the main and test networks."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field

_BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_BASE58_INDEX = {ch: i for i, ch in enumerate(_BASE58_ALPHABET)}

OP_DUP = 0x76
OP_HASH160 = 0xA9
OP_EQUALVERIFY = 0x88
OP_CHECKSIG = 0xAC


def _double_sha256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def base58check_decode(text: str) -> tuple[int, bytes]:
    """Decode a Base58Check string into its version byte and payload.

    Raises ValueError for an invalid character, a short string or a bad checksum.
    """
    number = 0
    for ch in text:
        try:
            number = number * 58 + _BASE58_INDEX[ch]
        except KeyError:
            raise ValueError(f"invalid base58 character {ch!r}") from None
    body = number.to_bytes((number.bit_length() + 7) // 8, "big") if number else b""
    leading = len(text) - len(text.lstrip("1"))
    raw = b"\x00" * leading + body
    if len(raw) < 5:
        raise ValueError("base58check string too short")
    data, checksum = raw[:-4], raw[-4:]
    if _double_sha256(data)[:4] != checksum:
        raise ValueError("base58check checksum mismatch")
    return data[0], data[1:]


def p2pkh_script(pub_key_hash: bytes) -> bytes:
    """Return the pay-to-pubkey-hash locking script for a 20-byte hash."""
    if len(pub_key_hash) != 20:
        raise ValueError(f"pubkey hash must be 20 bytes, got {len(pub_key_hash)}")
    return bytes([OP_DUP, OP_HASH160, 20]) + bytes(pub_key_hash) + bytes(
        [OP_EQUALVERIFY, OP_CHECKSIG]
    )


def _decode_pkh(address: str) -> bytes | None:
    try:
        _, payload = base58check_decode(address)
    except ValueError:
        return None
    return payload if len(payload) == 20 else None


@dataclass
class ChainParams:
    """Consensus-critical parameters of one network."""

    name: str
    net: int
    default_port: str
    rpc_port: str
    genesis_bits: int
    genesis_timestamp: int
    initial_reward: int
    halving_interval: int
    retarget_interval: int
    block_time: int
    pow_limit_bits: int
    allow_min_difficulty_blocks: bool
    max_block_weight: int
    admin_address: str
    admin_fee_atoms: int
    address_version: int
    bech32_hrp: str
    genesis_address: str = ""
    genesis_hash: bytes = bytes(32)
    checkpoints: dict[int, bytes] = field(default_factory=dict)
    seed_peers: list[str] = field(default_factory=list)

    def magic_bytes(self) -> bytes:
        """Return the 4-byte network magic, big-endian."""
        return self.net.to_bytes(4, "big")

    def admin_script(self) -> bytes | None:
        """Return the locking script paying the protocol fee, or None when disabled."""
        if not self.admin_address or self.admin_fee_atoms <= 0:
            return None
        pkh = _decode_pkh(self.admin_address)
        return p2pkh_script(pkh) if pkh is not None else None

    def genesis_script(self) -> bytes:
        """Return the script receiving the genesis reward; a burn script if unset."""
        pkh = _decode_pkh(self.genesis_address) if self.genesis_address else None
        return p2pkh_script(pkh if pkh is not None else bytes(20))


def calc_block_subsidy(height: int, params: ChainParams) -> int:
    """Return the block reward in atoms at a height, halving every interval."""
    halvings = height // params.halving_interval
    if halvings >= 64:
        return 0
    return params.initial_reward >> halvings


MAIN_NET_PARAMS = ChainParams(
    name="mainnet",
    net=0x4D4C5254,
    default_port="9333",
    rpc_port="9332",
    initial_reward=5_000_000_000,
    halving_interval=210_000,
    retarget_interval=2016,
    block_time=120,
    admin_address="MRxSEiJJ4FgHrUMMEMfTMeT6EmMDARE1AD",
    admin_fee_atoms=10,
    genesis_address="MRxSEiJJ4FgHrUMMEMfTMeT6EmMDARE1AD",
    address_version=50,
    bech32_hrp="mlrt",
    genesis_bits=0x1D00FFFF,
    pow_limit_bits=0x1E0FFFF0,
    allow_min_difficulty_blocks=True,
    max_block_weight=4_000_000,
    genesis_timestamp=1_776_732_000,
    seed_peers=["104.192.5.197:9333"],
)

TEST_NET_PARAMS = ChainParams(
    name="testnet",
    net=0x4D4C7274,
    default_port="19333",
    rpc_port="19332",
    initial_reward=5_000_000_000,
    halving_interval=210_000,
    retarget_interval=2016,
    block_time=120,
    admin_address="",
    admin_fee_atoms=0,
    address_version=111,
    bech32_hrp="tmlrt",
    genesis_bits=0x207FFFFF,
    pow_limit_bits=0x207FFFFF,
    allow_min_difficulty_blocks=True,
    max_block_weight=4_000_000,
    genesis_timestamp=1_745_452_800,
)
"""Runtime configuration for the node daemon: defaults and command-line parsing."""

from __future__ import annotations

import argparse
import os
import re
import sys
from dataclasses import dataclass, field, fields
from datetime import timedelta
from decimal import Decimal, InvalidOperation

MAINNET_RPC_ADDR = "127.0.0.1:9332"
MAINNET_P2P_ADDR = "0.0.0.0:9333"
TESTNET_RPC_ADDR = "127.0.0.1:19332"
TESTNET_P2P_ADDR = "0.0.0.0:19333"
NETWORKS = ("mainnet", "testnet")


def default_data_dir() -> str:
    """Return the platform-appropriate default data directory."""
    if sys.platform.startswith("win"):
        appdata = os.environ.get("APPDATA", "")
        if appdata:
            return os.path.join(appdata, "Malairte")
        return os.path.join(os.environ.get("USERPROFILE", ""), ".malairte")
    if sys.platform == "darwin":
        return os.path.join(_home(), "Library", "Application Support", "Malairte")
    return os.path.join(_home(), ".malairte")


def _home() -> str:
    return os.path.expanduser("~")


def _cpu_count() -> int:
    return os.cpu_count() or 1


@dataclass
class Config:
    """Full runtime configuration for the node daemon."""

    data_dir: str = field(default_factory=default_data_dir)
    network: str = "mainnet"
    rpc_addr: str = MAINNET_RPC_ADDR
    rpc_user: str = ""
    rpc_pass: str = ""
    p2p_addr: str = MAINNET_P2P_ADDR
    mine: bool = False
    miner_key: str = ""
    seed_peers: list[str] = field(default_factory=list)
    log_level: str = "info"
    max_peers: int = 125
    max_mempool: int = 300
    mine_threads: int = field(default_factory=_cpu_count)
    gpu: bool = False
    payout_addr: str = ""
    payout_threshold_atoms: int = 100_000_000_000
    heartbeat_url: str = ""
    heartbeat_worker: str = ""
    sync_before_mine: bool = True
    sync_wait_timeout: timedelta = timedelta(minutes=5)


def default_config() -> Config:
    """Return a Config holding the production defaults."""
    return Config()


# ── Duration parsing ─────────────────────────────────────────────────────────

_UNIT_NANOS = {
    "ns": Decimal(1),
    "us": Decimal(1_000),
    "µs": Decimal(1_000),
    "μs": Decimal(1_000),
    "ms": Decimal(1_000_000),
    "s": Decimal(1_000_000_000),
    "m": Decimal(60_000_000_000),
    "h": Decimal(3_600_000_000_000),
}
_DURATION_PART = re.compile(r"(\d*(?:\.\d*)?)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as "300ms", "1.5h" or "2h45m" into a timedelta."""
    original = text
    sign = 1
    if text[:1] in ("+", "-"):
        if text[0] == "-":
            sign = -1
        text = text[1:]
    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError(f"invalid duration {original!r}")
    total = Decimal(0)
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if match is None or not any(ch.isdigit() for ch in match.group(1)):
            raise ValueError(f"invalid duration {original!r}")
        number = match.group(1)
        if number.startswith("."):
            number = "0" + number
        if number.endswith("."):
            number += "0"
        try:
            total += Decimal(number) * _UNIT_NANOS[match.group(2)]
        except InvalidOperation as exc:
            raise ValueError(f"invalid duration {original!r}") from exc
        pos = match.end()
    nanos = int(total)
    return sign * timedelta(microseconds=nanos // 1000)


def _format_duration(value: timedelta) -> str:
    seconds = int(value.total_seconds())
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    out = ""
    if hours:
        out += f"{hours}h"
    if hours or minutes:
        out += f"{minutes}m"
    return out + f"{secs}s"


# ── Path expansion ───────────────────────────────────────────────────────────

_SHELL_SPECIAL = set("*#$@!?-0123456789")


def _is_name_char(ch: str) -> bool:
    return ch == "_" or ch.isascii() and ch.isalnum()


def _shell_name(text: str) -> tuple[str, int]:
    """Return the variable name after a '$' and how many characters it spans."""
    if text[0] == "{":
        if len(text) > 2 and text[1] in _SHELL_SPECIAL and text[2] == "}":
            return text[1], 3
        end = text.find("}", 1)
        if end == -1:
            return "", 1
        if end == 1:
            return "", 2
        return text[1:end], end + 1
    if text[0] in _SHELL_SPECIAL:
        return text[0], 1
    length = 0
    while length < len(text) and _is_name_char(text[length]):
        length += 1
    return text[:length], length


def _expand_env(path: str) -> str:
    parts: list[str] = []
    start = 0
    i = 0
    while i < len(path):
        if path[i] == "$" and i + 1 < len(path):
            parts.append(path[start:i])
            name, width = _shell_name(path[i + 1:])
            if name:
                parts.append(os.environ.get(name, ""))
            elif width == 0:
                parts.append("$")
            i += width
            start = i + 1
        i += 1
    parts.append(path[start:])
    return "".join(parts)


def expand_path(path: str) -> str:
    """Expand a leading ~ and environment variables in a path."""
    if path == "~":
        return _home()
    if path.startswith("~/"):
        path = os.path.join(_home(), path[2:])
    return _expand_env(path)


# ── Command line ─────────────────────────────────────────────────────────────

_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


def _parse_bool(text: str) -> bool:
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"invalid boolean value {text!r}")


def _parse_int(text: str) -> int:
    try:
        return int(text, 0)
    except ValueError:
        return int(text)


def _build_parser(cfg: Config) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="malairte-node", allow_abbrev=False)

    def text(flag: str, dest: str, help_text: str) -> None:
        parser.add_argument(flag, dest=dest, default=getattr(cfg, dest), help=help_text)

    def number(flag: str, dest: str, help_text: str) -> None:
        parser.add_argument(flag, dest=dest, type=_parse_int,
                            default=getattr(cfg, dest), help=help_text)

    def boolean(flag: str, dest: str, help_text: str) -> None:
        parser.add_argument(flag, dest=dest, type=_parse_bool, nargs="?", const=True,
                            default=getattr(cfg, dest), help=help_text)

    text("--data-dir", "data_dir", "Directory for blockchain data and database")
    text("--network", "network", "Network to use: mainnet or testnet")
    text("--rpc-addr", "rpc_addr", "JSON-RPC server listen address (must be localhost)")
    text("--rpc-user", "rpc_user", "Username for RPC HTTP Basic Auth (empty = no auth)")
    text("--rpc-pass", "rpc_pass", "Password for RPC HTTP Basic Auth (empty = no auth)")
    text("--p2p-addr", "p2p_addr", "P2P listen address")
    boolean("--mine", "mine", "Enable CPU miner")
    text("--miner-key", "miner_key",
         "Hex-encoded private key for mining rewards (generated if empty)")
    parser.add_argument("--seeds", dest="seeds", default="",
                        help="Comma-separated list of seed peer addresses (host:port)")
    text("--log-level", "log_level", "Log verbosity: debug, info, warn, error")
    number("--max-peers", "max_peers", "Maximum number of simultaneous peer connections")
    number("--max-mempool", "max_mempool", "Maximum mempool size in megabytes")
    number("--mine-threads", "mine_threads",
           "Number of parallel CPU mining threads (default: number of logical CPUs)")
    boolean("--gpu", "gpu",
            "Enable GPU mining (OpenCL; falls back to CPU-only if no device available)")
    text("--payout-addr", "payout_addr",
         "Optional destination address for auto-payout sweeps")
    number("--payout-threshold", "payout_threshold_atoms",
           "Sweep threshold in atoms (default 100_000_000_000 = 1000 MLRT)")
    text("--heartbeat-url", "heartbeat_url",
         "Explorer endpoint that receives miner status pings (empty = none)")
    parser.add_argument("--heartbeat-token", dest="heartbeat_token", default="",
                        help="Deprecated: ignored")
    text("--heartbeat-worker", "heartbeat_worker",
         "Optional worker identifier used when reporting to --heartbeat-url")
    boolean("--sync-before-mine", "sync_before_mine",
            "Wait for the local chain to catch up to the best peer before mining")
    parser.add_argument("--sync-wait-timeout", dest="sync_wait_timeout",
                        type=parse_duration, default=cfg.sync_wait_timeout,
                        help="Maximum time to wait for initial sync before mining "
                             f"(default {_format_duration(cfg.sync_wait_timeout)}; 0 skips)")
    return parser


def load_config(argv: list[str] | None = None) -> Config:
    """Parse command-line arguments over the defaults and return a Config.

    Raises ValueError for an unknown network.
    """
    cfg = default_config()
    namespace = vars(_build_parser(cfg).parse_args(argv))
    cfg = Config(**{f.name: namespace[f.name] for f in fields(Config) if f.name in namespace})

    seeds = namespace["seeds"]
    if seeds:
        cfg.seed_peers = [s.strip() for s in seeds.split(",")]

    if cfg.network == "testnet":
        if cfg.rpc_addr == MAINNET_RPC_ADDR:
            cfg.rpc_addr = TESTNET_RPC_ADDR
        if cfg.p2p_addr == MAINNET_P2P_ADDR:
            cfg.p2p_addr = TESTNET_P2P_ADDR

    if cfg.network not in NETWORKS:
        raise ValueError(f"unknown network {cfg.network!r} (use mainnet or testnet)")

    cfg.data_dir = os.path.join(expand_path(cfg.data_dir), cfg.network)
    return cfg
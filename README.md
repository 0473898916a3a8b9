# malairte

Consensus-level building blocks for the Malairt chain, usable as a Python
library:

- **`malairte.config`** — node configuration: the `Config` dataclass,
  `default_config`, command-line parsing with `load_config`, the default data
  directory, path expansion and duration parsing.
- **`malairte.params`** — chain parameters (`ChainParams`, with
  `MAIN_NET_PARAMS` and `TEST_NET_PARAMS`), network magic, admin and genesis
  locking scripts, Base58Check decoding, P2PKH scripts and the block subsidy
  schedule.
- **`malairte.blockfilter`** — compact block filters in the BIP-158 basic
  style: bit I/O, compact-size varints, Golomb-Rice coding, SipHash-2-4,
  filter construction and matching, and BIP-157 filter-header chaining.
- **`malairte.sighash`** — transaction dataclasses (`OutPoint`, `TxInput`,
  `TxOutput`, `Transaction`) and the signature hashes: legacy SIGHASH_ALL,
  BIP-143 (SegWit v0), BIP-341 taproot key-path and BIP-342 tapscript. Every
  sighash starts with a 4-byte chain id, so a signature made for one network
  does not verify on another.
- **`malairte.scripts`** — P2PKH and P2WPKH spend verification, data-push
  parsing, scriptSig construction, `hash160` and secp256k1 ECDSA
  verification.

Install with `pip install .`; the test suite needs the `test` extra.

## Configuration

```python
from malairte.config import default_config, load_config, expand_path, parse_duration

cfg = default_config()          # mainnet, RPC 127.0.0.1:9332, P2P 0.0.0.0:9333
cfg = load_config(["--network=testnet", "--mine",
                   "--seeds=10.0.0.1:19333, 10.0.0.2:19333"])
cfg.rpc_addr                    # "127.0.0.1:19332"
cfg.seed_peers                  # ["10.0.0.1:19333", "10.0.0.2:19333"]

expand_path("~/malairte-data")  # home directory joined with "malairte-data"
parse_duration("2h45m")         # timedelta(hours=2, minutes=45)
```

`load_config(argv)` parses the given list (or `sys.argv` when `argv` is
`None`) and accepts `--data-dir`, `--network`, `--rpc-addr`, `--rpc-user`,
`--rpc-pass`, `--p2p-addr`, `--mine`, `--miner-key`, `--seeds`,
`--log-level`, `--max-peers`, `--max-mempool`, `--mine-threads`, `--gpu`,
`--payout-addr`, `--payout-threshold`, `--heartbeat-url`,
`--heartbeat-token` (accepted and ignored), `--heartbeat-worker`,
`--sync-before-mine` and `--sync-wait-timeout`. Boolean flags may be given
bare or as `--flag=true|false`.

After parsing:

- seed addresses are split on commas and stripped;
- on `testnet`, an RPC or P2P address left at its mainnet default moves to
  port 19332 or 19333;
- a network other than `mainnet` or `testnet` raises `ValueError`;
- the data directory has `~` and `$VAR` / `${VAR}` expanded (unset variables
  become empty) and the network name appended.

`default_data_dir()` returns `%APPDATA%\Malairte` on Windows,
`~/Library/Application Support/Malairte` on macOS and `~/.malairte`
elsewhere.

## Chain parameters and subsidy

```python
from malairte.params import MAIN_NET_PARAMS, calc_block_subsidy

MAIN_NET_PARAMS.magic_bytes()                 # b"MLRT"
MAIN_NET_PARAMS.admin_script()                # P2PKH script of the admin address
calc_block_subsidy(210_000, MAIN_NET_PARAMS)  # 2_500_000_000
```

The reward starts at `initial_reward` and halves every `halving_interval`
blocks; from 64 halvings on it is zero. `admin_script()` returns `None` when
no admin address is set or the fee is not positive. `genesis_script()` falls
back to a P2PKH script over twenty zero bytes when the genesis address is
empty or cannot be decoded. `base58check_decode` returns the version byte and
payload and raises `ValueError` on a bad character, a short string or a
checksum mismatch.

## Compact block filters

```python
from malairte.blockfilter import (
    build_block_filter, filter_key, filter_match_any, filter_hash, filter_header,
)

flt = build_block_filter(block_hash, output_scripts, spent_scripts)
key = filter_key(block_hash)                # first 16 bytes of the block hash
filter_match_any(flt, key, [my_script])     # True for every committed script

header = filter_header(filter_hash(flt), previous_header)  # zeros before the first block
```

Empty and duplicate scripts are ignored; a block with no scripts yields the
single byte `00`. Filters have no false negatives and a false-positive rate
of about 1/784931 per element. `filter_match_any` raises `ValueError` for an
empty or truncated filter.

## Signature hashes and script checks

`malairte.sighash` provides `calc_sig_hash`, `calc_sig_hash_witness_v0`,
`calc_taproot_key_spend_sig_hash` and `calc_tapscript_sig_hash`, along with
`hash256` and `tagged_hash`. The taproot functions accept only hash types
`0x00` and `0x01`, require one prevout script and amount per input, raise
`IndexError` for an out-of-range input and `ValueError` otherwise.

`malairte.scripts` provides `verify_p2pkh` and `verify_p2wpkh`, which return
`None` for a valid spend and raise `ScriptError` (a `ValueError`) when it is
not. Only signatures ending in SIGHASH_ALL are accepted. Also available:
`read_data_push` (direct pushes, OP_PUSHDATA1, OP_PUSHDATA2),
`parse_p2pkh_script_sig`, `build_p2pkh_script_sig`, `hash160`,
`p2wpkh_script` and `ecdsa_verify`.

## What this package does not do

It is a library, not a node: there is no command to run, no block storage,
no peer-to-peer networking, no JSON-RPC server, no mempool and no miner. It
does not validate whole blocks, track the UTXO set or handle reorganisations.
It computes taproot sighashes but does not verify Schnorr signatures or
taproot spends; script verification covers P2PKH and P2WPKH only.
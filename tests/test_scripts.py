import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed

from malairte.params import p2pkh_script
from malairte.scripts import (
    ScriptError,
    build_p2pkh_script_sig,
    ecdsa_verify,
    hash160,
    p2wpkh_script,
    parse_p2pkh_script_sig,
    read_data_push,
    verify_p2pkh,
    verify_p2wpkh,
)
from malairte.sighash import (
    OutPoint,
    Transaction,
    TxInput,
    TxOutput,
    calc_sig_hash,
    calc_sig_hash_witness_v0,
)

TEST_CHAIN_ID = 0x4D4C5254
MAINNET_ID = 0x4D4C5254
TESTNET_ID = 0x4D4C7274


def _keypair():
    priv = ec.generate_private_key(ec.SECP256K1())
    pub = priv.public_key().public_bytes(
        serialization.Encoding.X962, serialization.PublicFormat.CompressedPoint
    )
    return priv, pub


def _sign(priv, digest):
    return priv.sign(digest, ec.ECDSA(Prehashed(hashes.SHA256())))


def _spend_tx(script_pubkey):
    return Transaction(
        version=1,
        inputs=[TxInput(previous_output=OutPoint(txid=b"\xaa" + bytes(31), index=0))],
        outputs=[TxOutput(value=1_000_000, script_pubkey=script_pubkey)],
    )


def _sign_p2pkh(priv, pub, tx, idx, spk, chain_id=TEST_CHAIN_ID):
    digest = calc_sig_hash(tx, idx, spk, chain_id)
    return build_p2pkh_script_sig(_sign(priv, digest), pub)


def _sign_p2wpkh(priv, pub, tx, idx, amount):
    code = p2pkh_script(hash160(pub))
    digest = calc_sig_hash_witness_v0(tx, idx, code, amount, TEST_CHAIN_ID)
    return [_sign(priv, digest) + b"\x01", pub]


def _witness_tx(witness=None, script_sig=b""):
    return Transaction(
        version=1,
        inputs=[TxInput(script_sig=script_sig, witness=witness or [])],
        outputs=[TxOutput(value=1, script_pubkey=b"\x51")],
    )


# ── helpers ──────────────────────────────────────────────────────────────────


def test_hash160_empty_vector():
    assert hash160(b"").hex() == "b472a266d0bd89c13706a4132ccfb16f7c3b9fcb"


def test_p2wpkh_script_layout():
    assert p2wpkh_script(bytes(range(20))) == b"\x00\x14" + bytes(range(20))


def test_p2wpkh_script_rejects_bad_length():
    with pytest.raises(ValueError):
        p2wpkh_script(bytes(19))


def test_build_and_parse_script_sig_round_trip():
    _, pub = _keypair()
    sig = bytes(range(70))
    script = build_p2pkh_script_sig(sig, pub)
    parsed_sig, parsed_pub = parse_p2pkh_script_sig(script)
    assert parsed_sig == sig + b"\x01"
    assert parsed_pub == pub


def test_parse_script_sig_rejects_uncompressed_pubkey():
    script = b"\x02\xaa\x01" + b"\x41" + bytes(65)
    with pytest.raises(ScriptError):
        parse_p2pkh_script_sig(script)


def test_ecdsa_verify_rejects_garbage_signature():
    _, pub = _keypair()
    assert ecdsa_verify(pub, bytes(32), b"\x30\x01\x00") is False


def test_ecdsa_verify_accepts_valid_signature():
    priv, pub = _keypair()
    digest = bytes(range(32))
    assert ecdsa_verify(pub, digest, _sign(priv, digest)) is True


# ── P2PKH ────────────────────────────────────────────────────────────────────


def test_p2pkh_valid():
    priv, pub = _keypair()
    spk = p2pkh_script(hash160(pub))
    tx = _spend_tx(spk)
    tx.inputs[0].script_sig = _sign_p2pkh(priv, pub, tx, 0, spk)
    assert verify_p2pkh(tx.inputs[0].script_sig, spk, tx, 0, TEST_CHAIN_ID) is None


def test_p2pkh_wrong_pubkey():
    priv1, pub1 = _keypair()
    _, pub2 = _keypair()
    spk = p2pkh_script(hash160(pub1))
    tx = _spend_tx(spk)
    digest = calc_sig_hash(tx, 0, spk, TEST_CHAIN_ID)
    tx.inputs[0].script_sig = build_p2pkh_script_sig(_sign(priv1, digest), pub2)
    with pytest.raises(ScriptError, match="pubkey hash mismatch"):
        verify_p2pkh(tx.inputs[0].script_sig, spk, tx, 0, TEST_CHAIN_ID)


def test_p2pkh_wrong_signature():
    priv, pub = _keypair()
    spk = p2pkh_script(hash160(pub))
    tx = _spend_tx(spk)
    wrong = b"\xff" + bytes(31)
    tx.inputs[0].script_sig = build_p2pkh_script_sig(_sign(priv, wrong), pub)
    with pytest.raises(ScriptError, match="invalid signature"):
        verify_p2pkh(tx.inputs[0].script_sig, spk, tx, 0, TEST_CHAIN_ID)


def test_p2pkh_sig_covers_outputs():
    priv, pub = _keypair()
    spk = p2pkh_script(hash160(pub))
    tx = _spend_tx(spk)
    tx.inputs[0].script_sig = _sign_p2pkh(priv, pub, tx, 0, spk)
    tx.outputs[0].value = 999_999_999
    with pytest.raises(ScriptError):
        verify_p2pkh(tx.inputs[0].script_sig, spk, tx, 0, TEST_CHAIN_ID)


def test_p2pkh_chain_id_binds_signature():
    priv, pub = _keypair()
    spk = p2pkh_script(hash160(pub))
    tx = _spend_tx(spk)
    tx.inputs[0].script_sig = _sign_p2pkh(priv, pub, tx, 0, spk, MAINNET_ID)
    assert verify_p2pkh(tx.inputs[0].script_sig, spk, tx, 0, MAINNET_ID) is None
    with pytest.raises(ScriptError):
        verify_p2pkh(tx.inputs[0].script_sig, spk, tx, 0, TESTNET_ID)


def test_p2pkh_unsupported_sighash_type():
    priv, pub = _keypair()
    spk = p2pkh_script(hash160(pub))
    tx = _spend_tx(spk)
    sig = _sign(priv, calc_sig_hash(tx, 0, spk, TEST_CHAIN_ID)) + b"\x02"
    script_sig = bytes([len(sig)]) + sig + bytes([len(pub)]) + pub
    with pytest.raises(ScriptError, match="unsupported sighash type 0x02"):
        verify_p2pkh(script_sig, spk, tx, 0, TEST_CHAIN_ID)


# ── P2WPKH ───────────────────────────────────────────────────────────────────


def test_p2wpkh_valid():
    priv, pub = _keypair()
    spk = p2wpkh_script(hash160(pub))
    tx = Transaction(
        version=1,
        inputs=[TxInput(previous_output=OutPoint(txid=b"\xaa" + bytes(31), index=0))],
        outputs=[TxOutput(value=900_000, script_pubkey=p2pkh_script(b"\xbb" + bytes(19)))],
    )
    amount = 1_000_000
    tx.inputs[0].witness = _sign_p2wpkh(priv, pub, tx, 0, amount)
    assert verify_p2wpkh(b"", spk, tx, 0, amount, TEST_CHAIN_ID) is None


def test_p2wpkh_rejects_non_empty_script_sig():
    _, pub = _keypair()
    spk = p2wpkh_script(hash160(pub))
    tx = _witness_tx(script_sig=b"\x01")
    with pytest.raises(ScriptError, match="empty scriptSig"):
        verify_p2wpkh(tx.inputs[0].script_sig, spk, tx, 0, 1, TEST_CHAIN_ID)


def test_p2wpkh_rejects_wrong_pubkey():
    priv1, pub1 = _keypair()
    _, pub2 = _keypair()
    spk = p2wpkh_script(hash160(pub1))
    tx = _witness_tx()
    code = p2pkh_script(hash160(pub1))
    digest = calc_sig_hash_witness_v0(tx, 0, code, 1, TEST_CHAIN_ID)
    tx.inputs[0].witness = [_sign(priv1, digest) + b"\x01", pub2]
    with pytest.raises(ScriptError, match="hash mismatch"):
        verify_p2wpkh(b"", spk, tx, 0, 1, TEST_CHAIN_ID)


def test_p2wpkh_amount_covered_by_sig():
    priv, pub = _keypair()
    spk = p2wpkh_script(hash160(pub))
    tx = _witness_tx()
    tx.inputs[0].witness = _sign_p2wpkh(priv, pub, tx, 0, 1_000_000)
    with pytest.raises(ScriptError, match="invalid P2WPKH signature"):
        verify_p2wpkh(b"", spk, tx, 0, 2_000_000, TEST_CHAIN_ID)


def test_p2wpkh_wrong_witness_arity():
    _, pub = _keypair()
    spk = p2wpkh_script(hash160(pub))
    tx = _witness_tx(witness=[b"\x01", b"\x02", b"\x03"])
    with pytest.raises(ScriptError, match="2 items, got 3"):
        verify_p2wpkh(b"", spk, tx, 0, 1, TEST_CHAIN_ID)


# ── read_data_push ───────────────────────────────────────────────────────────


def test_read_data_push_direct():
    payload = b"\xde\xad\xbe\xef"
    data, consumed = read_data_push(bytes([len(payload)]) + payload, 0)
    assert consumed == 1 + len(payload)
    assert data == payload


def test_read_data_push_pushdata1():
    payload = bytes(range(100))
    data, consumed = read_data_push(b"\x4c" + bytes([len(payload)]) + payload, 0)
    assert consumed == 2 + len(payload)
    assert data == payload


def test_read_data_push_pushdata2():
    payload = bytes(i % 256 for i in range(300))
    script = b"\x4d" + len(payload).to_bytes(2, "little") + payload
    data, consumed = read_data_push(script, 0)
    assert consumed == 3 + len(payload)
    assert len(data) == len(payload)


def test_read_data_push_from_offset():
    data, consumed = read_data_push(b"\x01\xaa\x02\xbb\xcc", 2)
    assert (data, consumed) == (b"\xbb\xcc", 3)


@pytest.mark.parametrize(
    "script",
    [
        b"",
        b"\x05\x01",
        b"\x4c",
        b"\x4c\x05\x01",
        b"\x00",
    ],
    ids=["empty", "truncated direct push", "pushdata1 missing length",
         "pushdata1 truncated data", "unsupported opcode"],
)
def test_read_data_push_errors(script):
    with pytest.raises(ScriptError):
        read_data_push(script, 0)
from __future__ import annotations

from lpstake.crypto.sig import canonical_call_message, sign_ed25519, verify_ed25519_signature
from lpstake.testing.sigtools import deterministic_ed25519_keypair, sign_call_dict


def test_canonical_message_is_order_independent() -> None:
    a = canonical_call_message(op="deposit", caller="ab", nonce=1, payload={"x": 1, "amount": 5})
    b = canonical_call_message(op="deposit", caller="ab", nonce=1, payload={"amount": 5, "x": 1})
    assert a == b
    assert a.startswith(b'{"caller":"ab"')


def test_signed_call_verifies_and_binds_every_field() -> None:
    body = sign_call_dict("deposit", {"amount": 500}, label="alice", nonce=3)
    pk, _ = deterministic_ed25519_keypair(label="alice")
    assert body["caller"] == pk

    msg = canonical_call_message(op="deposit", caller=pk, nonce=3, payload={"amount": 500})
    assert verify_ed25519_signature(message=msg, sig=body["sig"], pubkey=pk)

    for tampered in (
        canonical_call_message(op="deposit", caller=pk, nonce=3, payload={"amount": 501}),
        canonical_call_message(op="deposit", caller=pk, nonce=4, payload={"amount": 500}),
        canonical_call_message(op="withdraw_early", caller=pk, nonce=3, payload={"amount": 500}),
    ):
        assert not verify_ed25519_signature(message=tampered, sig=body["sig"], pubkey=pk)


def test_sign_ed25519_accepts_hex_seed() -> None:
    seed = "11" * 32
    sig = sign_ed25519(message=b"hello", privkey=seed)
    from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
    from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

    pk = Ed25519PrivateKey.from_private_bytes(bytes.fromhex(seed)).public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    assert verify_ed25519_signature(message=b"hello", sig=sig, pubkey=pk.hex())
    assert not verify_ed25519_signature(message=b"hello", sig="zz", pubkey=pk.hex())

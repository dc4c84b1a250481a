from __future__ import annotations

import hashlib
from typing import Any, Dict, Optional, Tuple

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from lpstake.crypto.sig import canonical_call_message

Json = Dict[str, Any]


def _sha256(b: bytes) -> bytes:
    return hashlib.sha256(b).digest()


def deterministic_ed25519_keypair(*, label: str) -> Tuple[str, Ed25519PrivateKey]:
    """Deterministically derive an Ed25519 keypair from a stable label.

    TEST ONLY.

    Returns:
      (pubkey_hex, private_key)
    """
    seed = _sha256(("lpstake-test-ed25519:" + (label or "")).encode("utf-8"))
    sk = Ed25519PrivateKey.from_private_bytes(seed)
    pk_hex = sk.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw).hex()
    return pk_hex, sk


def sign_call_dict(op: str, body: Json, *, label: str, nonce: Optional[int] = None) -> Json:
    """Return an API request body signed by the key derived from ``label``.

    ``caller`` is set to that key's public hex. Every field other than
    caller/nonce/sig is the signed payload.
    """
    if not isinstance(body, dict):
        raise TypeError("body must be a dict")

    pk_hex, sk = deterministic_ed25519_keypair(label=label)
    n = int(nonce if nonce is not None else body.get("nonce") or 1)
    payload = {k: v for k, v in body.items() if k not in {"caller", "nonce", "sig"}}

    msg = canonical_call_message(op=op, caller=pk_hex, nonce=n, payload=payload)
    out = dict(payload)
    out["caller"] = pk_hex
    out["nonce"] = n
    out["sig"] = sk.sign(msg).hex()
    return out

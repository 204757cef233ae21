"""
Signing credentials and the identity registry.

A ``Credential`` is a secp256k1 key pair plus the address derived from
its public key.  The ``IdentityRegistry`` maps addresses to the
credentials that control them; each scenario owns one and hands it to
every phase that needs to sign on behalf of a synthetic partner.

Usage::

    registry = IdentityRegistry()
    partner = registry.create()
    sig = partner.sign(b"payload")
    assert registry.get(partner.address) is partner
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

ZERO_ADDRESS = "0x" + "0" * 40


def address_from_public_key(public_key: bytes) -> str:
    """Last 20 bytes of SHA-256(public key), 0x-prefixed."""
    return "0x" + hashlib.sha256(public_key).digest()[-20:].hex()


def normalize_address(address: str) -> str:
    """Lower-case a 0x-prefixed 20-byte hex address, validating its shape."""
    if not isinstance(address, str):
        raise TypeError(f"Address must be a string, got {type(address).__name__}")
    raw = address[2:] if address.startswith(("0x", "0X")) else address
    if len(raw) != 40:
        raise ValueError(f"Address must be 20 bytes: {address!r}")
    int(raw, 16)  # raises ValueError on non-hex
    return "0x" + raw.lower()


def verify_signature(public_key_hex: str, signature_hex: str, message: bytes) -> bool:
    """Verify an ECDSA(secp256k1, SHA-256) signature over ``message``."""
    try:
        pub = ec.EllipticCurvePublicKey.from_encoded_point(
            ec.SECP256K1(), bytes.fromhex(public_key_hex),
        )
        pub.verify(bytes.fromhex(signature_hex), message, ec.ECDSA(hashes.SHA256()))
        return True
    except InvalidSignature:
        return False
    except ValueError:
        return False


@dataclass(eq=False)
class Credential:
    """A secp256k1 signing key and the address it controls."""

    private_key: ec.EllipticCurvePrivateKey
    public_key: bytes = b""
    address: str = field(default="", init=False)

    def __post_init__(self):
        if not self.public_key:
            self.public_key = self.private_key.public_key().public_bytes(
                serialization.Encoding.X962,
                serialization.PublicFormat.UncompressedPoint,
            )
        self.address = address_from_public_key(self.public_key)

    @classmethod
    def generate(cls) -> "Credential":
        return cls(ec.generate_private_key(ec.SECP256K1(), default_backend()))

    @property
    def public_key_hex(self) -> str:
        return self.public_key.hex()

    def sign(self, message: bytes) -> str:
        """Hex-encoded DER signature over ``message``."""
        return self.private_key.sign(message, ec.ECDSA(hashes.SHA256())).hex()

    def __repr__(self) -> str:
        return f"<Credential {self.address}>"


class IdentityRegistry:
    """Address -> credential map built up while a scenario runs."""

    def __init__(self):
        self._credentials: Dict[str, Credential] = {}

    def create(self) -> Credential:
        """Generate a fresh credential and register it."""
        credential = Credential.generate()
        self.register(credential)
        return credential

    def register(self, credential: Credential) -> None:
        self._credentials[credential.address] = credential

    def get(self, address: str) -> Optional[Credential]:
        return self._credentials.get(normalize_address(address))

    def __contains__(self, address: str) -> bool:
        return self.get(address) is not None

    def __len__(self) -> int:
        return len(self._credentials)

    def __iter__(self) -> Iterator[Credential]:
        return iter(list(self._credentials.values()))

"""
corpusgate/core/crypto.py

Ed25519 keys for audit signatures.

Each audit entry carries the hex public key of its signer next to a
base64url signature (padding stripped). Checking a persisted log
therefore needs no private key, only verify_detached().
"""

import base64
import binascii
from pathlib import Path

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
    load_pem_private_key,
)

SIGNATURE_BYTES  = 64
PUBLIC_KEY_BYTES = 32


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _unb64url(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


class SigningKey:
    """
    An Ed25519 private key plus its cached public half.

        SigningKey.generate()
        SigningKey.from_file(path)
        SigningKey.load_or_create(path)

    ``public_key_hex`` is a property, 64 lowercase hex characters.
    """

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key = private_key
        self._public_key_hex = (
            private_key.public_key()
            .public_bytes(Encoding.Raw, PublicFormat.Raw)
            .hex()
        )

    @classmethod
    def generate(cls) -> "SigningKey":
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_file(cls, path: Path) -> "SigningKey":
        """
        Load a PEM private key.

        Raises:
            FileNotFoundError: path does not exist.
            ValueError:        not a PEM file, or not an Ed25519 key.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Key file not found: {path}")
        try:
            loaded = load_pem_private_key(path.read_bytes(), password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise ValueError(f"Cannot read signing key {path}: {exc}") from exc
        if not isinstance(loaded, Ed25519PrivateKey):
            raise ValueError(f"Signing key {path} is not an Ed25519 private key")
        return cls(loaded)

    @classmethod
    def load_or_create(cls, path: Path) -> "SigningKey":
        """Load the key at path, or generate one and write it there."""
        path = Path(path)
        if path.exists():
            return cls.from_file(path)
        key = cls.generate()
        key.save(path)
        return key

    @property
    def public_key_hex(self) -> str:
        return self._public_key_hex

    def sign(self, data: bytes) -> str:
        """Sign already-canonical bytes."""
        return _b64url(self._private_key.sign(data))

    def verify(self, data: bytes, signature: str) -> bool:
        return SigningKey.verify_detached(data, signature, self._public_key_hex)

    @staticmethod
    def verify_detached(data: bytes, signature: str, public_key_hex: str) -> bool:
        """
        Check a signature against a hex public key.

        Never raises: a malformed key or signature is simply not valid.
        """
        if not isinstance(public_key_hex, str) or not isinstance(signature, str):
            return False
        try:
            raw_key = bytes.fromhex(public_key_hex)
            raw_sig = _unb64url(signature)
        except (ValueError, binascii.Error):
            return False
        if len(raw_key) != PUBLIC_KEY_BYTES or len(raw_sig) != SIGNATURE_BYTES:
            return False
        try:
            Ed25519PublicKey.from_public_bytes(raw_key).verify(raw_sig, data)
        except (InvalidSignature, ValueError):
            return False
        return True

    def save(self, path: Path) -> None:
        """Write the private key as unencrypted PKCS8 PEM, creating parent dirs."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(
            self._private_key.private_bytes(
                encoding=             Encoding.PEM,
                format=               PrivateFormat.PKCS8,
                encryption_algorithm= NoEncryption(),
            )
        )

    def __repr__(self) -> str:
        return f"SigningKey(public_key_hex={self._public_key_hex[:16]}...)"

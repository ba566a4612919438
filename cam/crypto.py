"""
cam - Cryptography Module

This single file contains ALL cryptographic operations for cam:
- KeyManager: lazily creates one RSA-2048 keypair on disk
- CryptoEngine: stateless RSA-OAEP encrypt/decrypt given key file paths
- base64 helpers used to embed ciphertext in JSON

Security Architecture:
    1. First private pin (or secret config write) → generate RSA keypair
    2. Private key → .keys/private_key.pem (PKCS#1 PEM, mode 0600)
    3. Public key  → .keys/public_key.pem  (SubjectPublicKeyInfo PEM, mode 0644)
    4. Each private command is encrypted on its own with RSA-OAEP (SHA-256)

Limits (read these before storing anything):
    - OAEP with a 2048-bit key and SHA-256 carries at most 190 bytes
    - No integrity beyond what OAEP padding checks provide
    - No rotation: deleting private_key.pem loses every private record
"""

import base64
import binascii
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from .errors import (
    DecryptionError,
    EncryptionError,
    KeyFileIOError,
    KeyGenerationError,
    PEMDecodeError,
    PublicKeyTypeMismatchError,
)

log = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]
# A private key file, or a key already parsed by load_private_key()
PrivateKeySource = Union[str, os.PathLike, rsa.RSAPrivateKey]


# =============================================================================
# Configuration
# =============================================================================

KEY_SIZE = 2048          # RSA modulus bits
PUBLIC_EXPONENT = 65537
HASH_SIZE = 32           # SHA-256 digest bytes

PRIVATE_KEY_FILE = "private_key.pem"
PUBLIC_KEY_FILE = "public_key.pem"

KEY_DIR_MODE = 0o700
PRIVATE_KEY_MODE = 0o600
PUBLIC_KEY_MODE = 0o644


def max_payload(key_size: int = KEY_SIZE, hash_size: int = HASH_SIZE) -> int:
    """
    Largest plaintext RSA-OAEP can carry: k - 2*hLen - 2 bytes.

    For 2048-bit keys with SHA-256 that is 256 - 64 - 2 = 190.
    """
    return key_size // 8 - 2 * hash_size - 2


MAX_PAYLOAD_BYTES = max_payload()


def _oaep() -> padding.OAEP:
    # Same digest for the padding hash and MGF1, no label.
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None,
    )


@dataclass(frozen=True)
class KeyPaths:
    """Locations of the two key files inside one key directory."""

    directory: Path

    @property
    def private_key(self) -> Path:
        return self.directory / PRIVATE_KEY_FILE

    @property
    def public_key(self) -> Path:
        return self.directory / PUBLIC_KEY_FILE


# =============================================================================
# Key Management
# =============================================================================

def ensure_keys_exist(directory: PathLike) -> KeyPaths:
    """
    Make sure a usable keypair exists in `directory`, creating it if needed.

    Cases:
    - Both key files present: nothing happens (idempotent, files untouched)
    - Private key present, public key missing: an earlier run was interrupted
      between the two writes. The public key is re-derived from the private
      key, so nothing already encrypted is lost.
    - No private key: a fresh RSA-2048 keypair is generated. The private key is
      written first, then the public key (which overwrites any stale copy).

    Args:
        directory: Key directory (created with mode 0700 if missing)

    Returns:
        KeyPaths for the directory

    Raises:
        KeyGenerationError: RSA key construction failed
        KeyFileIOError: Directory or key files cannot be created/written
        PEMDecodeError: Repair needed but the existing private key is unreadable
    """
    paths = KeyPaths(Path(directory))

    if paths.private_key.exists():
        if paths.public_key.exists():
            return paths
        log.warning("Public key missing, re-deriving it from %s", paths.private_key)
        private_key = load_private_key(paths.private_key)
        _write_key_file(paths.public_key, _public_pem(private_key), PUBLIC_KEY_MODE)
        return paths

    try:
        os.makedirs(paths.directory, mode=KEY_DIR_MODE, exist_ok=True)
    except OSError as e:
        raise KeyFileIOError(f"Failed to create key directory {paths.directory}: {e}") from e

    try:
        private_key = rsa.generate_private_key(
            public_exponent=PUBLIC_EXPONENT,
            key_size=KEY_SIZE,
        )
    except (ValueError, UnsupportedAlgorithm) as e:
        raise KeyGenerationError(f"Failed to generate RSA key: {e}") from e

    # PKCS#1 "RSA PRIVATE KEY" framing
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
    _write_key_file(paths.private_key, private_pem, PRIVATE_KEY_MODE)
    _write_key_file(paths.public_key, _public_pem(private_key), PUBLIC_KEY_MODE)

    log.info("Generated new %d-bit RSA keypair in %s", KEY_SIZE, paths.directory)
    return paths


def _public_pem(private_key: rsa.RSAPrivateKey) -> bytes:
    return private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def _write_key_file(path: Path, data: bytes, mode: int) -> None:
    """Write a key file and force its permission bits (umask can't widen them)."""
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.chmod(path, mode)
    except OSError as e:
        raise KeyFileIOError(f"Failed to write key file {path}: {e}") from e


def _read_key_file(path: PathLike) -> bytes:
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as e:
        raise KeyFileIOError(f"Failed to read key file {path}: {e}") from e


def _load_public_key(path: PathLike) -> rsa.RSAPublicKey:
    data = _read_key_file(path)
    try:
        key = serialization.load_pem_public_key(data)
    except (ValueError, UnsupportedAlgorithm) as e:
        raise PEMDecodeError(f"Failed to decode public key PEM {path}: {e}") from e
    if not isinstance(key, rsa.RSAPublicKey):
        raise PublicKeyTypeMismatchError(f"Not an RSA public key: {path}")
    return key


def load_private_key(path: PathLike) -> rsa.RSAPrivateKey:
    """
    Read and parse the private key PEM.

    Callers decrypting many records load the key once and pass the key
    object to decrypt() instead of the path.

    Raises:
        KeyFileIOError, PEMDecodeError
    """
    data = _read_key_file(path)
    try:
        key = serialization.load_pem_private_key(data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        # TypeError: the PEM is password protected
        raise PEMDecodeError(f"Failed to decode private key PEM {path}: {e}") from e
    if not isinstance(key, rsa.RSAPrivateKey):
        raise PEMDecodeError(f"Not an RSA private key: {path}")
    return key


# =============================================================================
# Encryption (RSA-OAEP, SHA-256)
# =============================================================================

def encrypt(plaintext: bytes, public_key_path: PathLike) -> bytes:
    """
    Encrypt a short payload with the public key.

    Encryption is randomized: the same plaintext gives different ciphertext
    on every call. That is expected, not a bug.

    Args:
        plaintext: At most MAX_PAYLOAD_BYTES (190) bytes
        public_key_path: PEM file written by ensure_keys_exist()

    Returns:
        256 bytes of ciphertext

    Raises:
        KeyFileIOError, PEMDecodeError, PublicKeyTypeMismatchError, EncryptionError
    """
    public_key = _load_public_key(public_key_path)

    limit = max_payload(public_key.key_size)
    if len(plaintext) > limit:
        raise EncryptionError(
            f"Payload is {len(plaintext)} bytes, RSA-OAEP limit is {limit} bytes"
        )

    try:
        return public_key.encrypt(plaintext, _oaep())
    except ValueError as e:
        raise EncryptionError(f"Encryption failed: {e}") from e


def decrypt(ciphertext: bytes, private_key: PrivateKeySource) -> bytes:
    """
    Decrypt ciphertext produced by encrypt().

    Args:
        ciphertext: Raw OAEP ciphertext
        private_key: Key file path, or a key from load_private_key()

    Raises:
        KeyFileIOError, PEMDecodeError: key file problems
        DecryptionError: wrong key, truncated or corrupted ciphertext
    """
    if not isinstance(private_key, rsa.RSAPrivateKey):
        private_key = load_private_key(private_key)
    try:
        return private_key.decrypt(ciphertext, _oaep())
    except ValueError as e:
        raise DecryptionError(f"Decryption failed: {e}") from e


# =============================================================================
# Helpers
# =============================================================================

def b64e(data: bytes) -> str:
    """Standard base64, for embedding ciphertext in JSON."""
    return base64.b64encode(data).decode("ascii")


def b64d(text: str) -> bytes:
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise DecryptionError(f"Ciphertext is not valid base64: {e}") from e


def encrypt_text(text: str, public_key_path: PathLike) -> str:
    """Encrypt a str and return base64 ciphertext (what goes into JSON files)."""
    return b64e(encrypt(text.encode("utf-8"), public_key_path))


def decrypt_text(encoded: str, private_key: PrivateKeySource) -> str:
    """Inverse of encrypt_text()."""
    plaintext = decrypt(b64d(encoded), private_key)
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionError(f"Decrypted payload is not UTF-8: {e}") from e

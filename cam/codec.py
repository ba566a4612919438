"""
cam - Record Codec

Per-record policy for loading and saving:

    load, public record              → unchanged
    load, private, public-only view  → excluded (None), no placeholder
    load, private, decrypting        → plaintext filled in, or the sentinel
    save, public record              → plaintext only
    save, private record             → ciphertext only (re-encrypted if we
                                       hold plaintext, else untouched)

A private record that fails to decrypt does not abort the load. Its
result is a DecryptionFailed value, and the record carries
DECRYPTION_FAILED_SENTINEL with decrypt_failed=True. for_save() never
re-encrypts such a record, so the original ciphertext survives on disk.

Also holds the JSON form of a record and the at-rest format checks.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple, Union

from . import crypto
from .errors import CamError, StoreParseError

log = logging.getLogger(__name__)

# Starts with '#': harmless if a shell ever runs it.
DECRYPTION_FAILED_SENTINEL = "# [DECRYPTION FAILED]"


def now_ts() -> str:
    """RFC 3339 timestamp, local offset, second precision."""
    return datetime.now().astimezone().isoformat(timespec="seconds")


@dataclass(frozen=True)
class Record:
    """
    One stored command.

    At rest exactly one of plaintext/ciphertext is set: ciphertext for
    private records, plaintext for public ones. After a decrypting load a
    private record carries both. is_private never changes after creation.
    """

    plaintext: str = ""
    ciphertext: str = ""
    is_private: bool = False
    tags: Tuple[str, ...] = ()
    created_at: str = ""
    # In memory only, never persisted
    decrypt_failed: bool = False

    @classmethod
    def create(cls, text: str, tags: Optional[List[str]] = None, is_private: bool = False) -> "Record":
        return cls(
            plaintext=text,
            is_private=is_private,
            tags=tuple(tags or ()),
            created_at=now_ts(),
        )


# =============================================================================
# Decryption result
# =============================================================================

@dataclass(frozen=True)
class Decrypted:
    plaintext: str


@dataclass(frozen=True)
class DecryptionFailed:
    reason: str


DecryptResult = Union[Decrypted, DecryptionFailed]


def decrypt_record(record: Record, private_key: crypto.PrivateKeySource) -> DecryptResult:
    """
    Try to recover the plaintext of a private record.

    private_key is the key file, or a key parsed once with
    crypto.load_private_key() when many records are decrypted in a row.

    Every key or crypto failure becomes DecryptionFailed; nothing raises.
    """
    if not record.ciphertext:
        return DecryptionFailed("record has no ciphertext")
    try:
        return Decrypted(crypto.decrypt_text(record.ciphertext, private_key))
    except CamError as e:
        return DecryptionFailed(str(e))


# =============================================================================
# Load / save policy
# =============================================================================

def for_load(record: Record, decrypt_private: bool,
             private_key: Optional[crypto.PrivateKeySource]) -> Optional[Record]:
    """
    Apply the load policy to one record.

    Args:
        record: Record as parsed from disk
        decrypt_private: Caller wants private plaintext
        private_key: Private key file (or parsed key), or None when the
            key file does not exist.
            Without a key, private records are returned as-is (empty
            plaintext) instead of failing one by one.

    Returns:
        The record to keep in memory, or None if it is filtered out
    """
    if not record.is_private:
        return record
    if not decrypt_private:
        return None
    if private_key is None:
        return record

    result = decrypt_record(record, private_key)
    if isinstance(result, Decrypted):
        return replace(record, plaintext=result.plaintext, decrypt_failed=False)

    log.debug("Private record from %s failed to decrypt: %s", record.created_at, result.reason)
    return replace(record, plaintext=DECRYPTION_FAILED_SENTINEL, decrypt_failed=True)


def for_save(record: Record, public_key_path: Path) -> Record:
    """
    Return the at-rest form of a record.

    Encryption failures are not fatal: a warning is logged and the record
    keeps whatever ciphertext it already had. Plaintext of a private record
    is dropped either way.
    """
    if not record.is_private:
        return replace(record, ciphertext="", decrypt_failed=False)

    if not record.plaintext or record.decrypt_failed:
        return replace(record, plaintext="", decrypt_failed=False)

    try:
        ciphertext = crypto.encrypt_text(record.plaintext, public_key_path)
    except CamError as e:
        log.warning("Failed to encrypt private command (keeping previous ciphertext): %s", e)
        ciphertext = record.ciphertext
    return replace(record, plaintext="", ciphertext=ciphertext, decrypt_failed=False)


# =============================================================================
# JSON form
# =============================================================================

def record_to_dict(record: Record) -> dict:
    """JSON form; field names match data.json written by earlier cam versions."""
    data = {}
    if record.plaintext:
        data["cmd"] = record.plaintext
    if record.ciphertext:
        data["encrypted"] = record.ciphertext
    data["is_private"] = record.is_private
    data["tags"] = list(record.tags)
    data["timestamp"] = record.created_at
    return data


def record_from_dict(data: dict) -> Record:
    """
    Parse one at-rest record and check the plaintext/ciphertext invariant.

    Raises:
        StoreParseError: Wrong field types, or a record that is both/neither
            encrypted and plain in a way its privacy flag forbids
    """
    if not isinstance(data, dict):
        raise StoreParseError(f"Record must be an object, got {type(data).__name__}")

    plaintext = data.get("cmd") or ""
    ciphertext = data.get("encrypted") or ""
    is_private = data.get("is_private", False)
    tags = data.get("tags") or []
    created_at = data.get("timestamp") or ""

    if not isinstance(plaintext, str) or not isinstance(ciphertext, str):
        raise StoreParseError("Record fields 'cmd' and 'encrypted' must be strings")
    if not isinstance(is_private, bool):
        raise StoreParseError("Record field 'is_private' must be a boolean")
    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        raise StoreParseError("Record field 'tags' must be a list of strings")
    if not isinstance(created_at, str):
        raise StoreParseError("Record field 'timestamp' must be a string")

    if is_private and plaintext:
        raise StoreParseError("Corrupted store: private record has plaintext at rest")
    if not is_private and ciphertext:
        raise StoreParseError("Corrupted store: public record has ciphertext")
    if not is_private and not plaintext:
        raise StoreParseError("Corrupted store: public record has no command")

    return Record(
        plaintext=plaintext,
        ciphertext=ciphertext,
        is_private=is_private,
        tags=tuple(tags),
        created_at=created_at,
    )

"""
cam - Store Module

This file handles:
- data.json (stack name → list of records, most recent first)
- Loading with or without private records decrypted
- Saving, encrypting private records on the way out
- Stack mutations by index

On-disk format:
    {
      "docker": [
        {"cmd": "docker ps -a", "is_private": false, "tags": [], "timestamp": "..."},
        {"encrypted": "<base64>", "is_private": true, "tags": [], "timestamp": "..."}
      ]
    }

Concurrency:
    One lock guards the in-memory map inside a process. Nothing coordinates
    separate processes: two cam invocations that load, mutate and save the
    same data.json race, and the later save silently wins (lost update).
    Do not run concurrent instances against one store.
"""

import logging
import threading
from typing import Dict, List, Optional

from . import codec, crypto
from .codec import Record
from .config import StorePaths, read_json, write_json
from .errors import (
    CamError,
    EncryptionError,
    IndexOutOfBoundsError,
    StackNotFoundError,
    StoreIOError,
    StoreParseError,
    StoreViewError,
)

log = logging.getLogger(__name__)


# =============================================================================
# STORE CLASS
# =============================================================================

class Store:
    """
    In-memory stacks plus the load/save protocol for data.json.

    Usage:
        store = Store(StorePaths.default())
        store.load(decrypt_private=True)

        store.add_command("danger", "rm -rf /tmp/x", is_private=True)
        store.swap("docker", 0, 1)

        store.save()    # nothing is written until save()

    A store loaded with decrypt_private=False holds only public records and
    cannot be saved: save() raises StoreViewError, since writing it back
    would delete every private record from disk. Load with
    decrypt_private=True before mutating and saving.
    """

    def __init__(self, paths: StorePaths):
        """
        Create an empty store (doesn't read anything yet).

        Args:
            paths: Where data.json and the key directory live
        """
        self.paths = paths
        self.stacks: Dict[str, List[Record]] = {}
        # True after load(decrypt_private=False): private records are missing
        self.public_only = False
        self._lock = threading.RLock()

    def load(self, decrypt_private: bool = False, missing_ok: bool = False) -> None:
        """
        Read data.json and apply the per-record load policy.

        Args:
            decrypt_private: If True, private records are decrypted (failures
                become the sentinel text). If False they are left out, and
                stacks that end up empty are dropped.
            missing_ok: Treat a missing data.json as an empty store. Off by
                default: unlike config.json, a missing data file is an error.

        Raises:
            StoreIOError: File missing (unless missing_ok) or unreadable
            StoreParseError: Not JSON, or a record violates the at-rest format
        """
        path = self.paths.data_file
        try:
            raw = read_json(path)
        except FileNotFoundError as e:
            if not missing_ok:
                raise StoreIOError(f"Data file not found: {path}") from e
            raw = {}

        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise StoreParseError(f"{path} must contain a JSON object of stacks")

        parsed: Dict[str, List[Record]] = {}
        for name, items in raw.items():
            if items is None:
                items = []
            if not isinstance(items, list):
                raise StoreParseError(f"Stack '{name}' must be a list of records")
            parsed[name] = [codec.record_from_dict(item) for item in items]

        # Check for and parse the private key once, not per record
        private_key: Optional[crypto.PrivateKeySource] = None
        if decrypt_private and self.paths.keys.private_key.exists():
            private_key = self._load_private_key()

        stacks: Dict[str, List[Record]] = {}
        for name, records in parsed.items():
            kept = []
            for record in records:
                loaded = codec.for_load(record, decrypt_private, private_key)
                if loaded is not None:
                    kept.append(loaded)
            if not decrypt_private and not kept:
                continue
            stacks[name] = kept

        with self._lock:
            self.stacks = stacks
            self.public_only = not decrypt_private
        log.debug("Loaded %d stacks from %s (decrypt_private=%s)", len(stacks), path, decrypt_private)

    def save(self) -> None:
        """
        Encrypt private records and rewrite data.json in full.

        A private record that cannot be encrypted keeps its previous
        ciphertext (warning logged); the save still succeeds.

        Raises:
            StoreViewError: Store was loaded public-only; saving would
                delete every private record from disk
            StoreIOError: File could not be written
        """
        with self._lock:
            if self.public_only:
                raise StoreViewError(
                    "Store was loaded without private records; reload with "
                    "decrypt_private=True before saving"
                )
            public_key = self.paths.keys.public_key
            data = {
                name: [codec.record_to_dict(codec.for_save(r, public_key)) for r in records]
                for name, records in self.stacks.items()
            }
        write_json(self.paths.data_file, data)
        log.debug("Saved %d stacks to %s", len(data), self.paths.data_file)

    # =========================================================================
    # MUTATIONS (in memory; call save() to persist)
    # =========================================================================

    def add_command(self, stack: str, text: str, tags: Optional[List[str]] = None,
                    is_private: bool = False) -> Record:
        """
        Prepend a command to a stack, creating the stack if needed.

        The first private command of a fresh install creates the keypair.

        Raises:
            ValueError: Empty command text
            EncryptionError: Private command longer than RSA-OAEP can carry
            KeyGenerationError, KeyFileIOError: keypair could not be created
        """
        if not text:
            raise ValueError("Command text is required")

        if is_private:
            size = len(text.encode("utf-8"))
            if size > crypto.MAX_PAYLOAD_BYTES:
                raise EncryptionError(
                    f"Private commands are limited to {crypto.MAX_PAYLOAD_BYTES} bytes "
                    f"(got {size})"
                )
            crypto.ensure_keys_exist(self.paths.keys.directory)

        record = Record.create(text, tags, is_private)
        with self._lock:
            self.stacks[stack] = [record] + self.stacks.get(stack, [])
        return record

    def remove_command(self, stack: str, index: int) -> Record:
        """Remove and return the record at `index`; later records shift down."""
        with self._lock:
            records = self._require_stack(stack)
            if not records:
                raise StackNotFoundError(f"Stack '{stack}' is empty")
            self._require_index(stack, records, index)
            return records.pop(index)

    def remove_stack(self, stack: str) -> None:
        with self._lock:
            self._require_stack(stack)
            del self.stacks[stack]

    def swap(self, stack: str, i: int, j: int) -> None:
        """Swap two records. Both indexes are checked before anything moves."""
        with self._lock:
            records = self._require_stack(stack)
            self._require_index(stack, records, i)
            self._require_index(stack, records, j)
            records[i], records[j] = records[j], records[i]

    def clear(self) -> None:
        """Drop every stack."""
        with self._lock:
            self.stacks = {}

    # =========================================================================
    # READS
    # =========================================================================

    def get_stack(self, stack: str) -> List[Record]:
        """Copy of a stack's records (empty list if it doesn't exist)."""
        with self._lock:
            return list(self.stacks.get(stack, []))

    def get_command(self, stack: str, index: int) -> Record:
        with self._lock:
            records = self._require_stack(stack)
            self._require_index(stack, records, index)
            return records[index]

    def stack_names(self) -> List[str]:
        with self._lock:
            return sorted(self.stacks)

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _require_stack(self, stack: str) -> List[Record]:
        records = self.stacks.get(stack)
        if records is None:
            raise StackNotFoundError(f"Stack '{stack}' does not exist")
        return records

    @staticmethod
    def _require_index(stack: str, records: List[Record], index: int) -> None:
        if index < 0 or index >= len(records):
            raise IndexOutOfBoundsError(f"Index {index} out of bounds for stack '{stack}'")

    def _load_private_key(self) -> crypto.PrivateKeySource:
        """Parsed private key, or its path if parsing fails (records then fail one by one)."""
        path = self.paths.keys.private_key
        try:
            return crypto.load_private_key(path)
        except CamError as e:
            log.warning("Cannot use private key %s: %s", path, e)
            return path

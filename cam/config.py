"""
cam - Paths and Configuration

StorePaths replaces the usual "look up ~/.config/cam everywhere" globals:
build one, pass it to Store / ConfigStore, and tests can point it at a
temp directory.

Layout under the config directory:
    data.json               stacks of commands (store.py)
    config.json             settings + encrypted secrets (this file)
    .keys/private_key.pem   RSA private key (0600)
    .keys/public_key.pem    RSA public key (0644)
"""

import json
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from . import crypto
from .errors import StoreIOError, StoreParseError

APP_NAME = "cam"
HOME_ENV = "CAM_HOME"


@dataclass(frozen=True)
class StorePaths:
    """Every file cam touches, derived from one config directory."""

    config_dir: Path

    @classmethod
    def default(cls) -> "StorePaths":
        """$CAM_HOME if set, else ~/.config/cam."""
        override = os.environ.get(HOME_ENV)
        if override:
            return cls(Path(override).expanduser())
        return cls(Path.home() / ".config" / APP_NAME)

    @property
    def data_file(self) -> Path:
        return self.config_dir / "data.json"

    @property
    def config_file(self) -> Path:
        return self.config_dir / "config.json"

    @property
    def keys(self) -> crypto.KeyPaths:
        return crypto.KeyPaths(self.config_dir / ".keys")


def write_json(path: Path, data: Any) -> None:
    """
    Rewrite a JSON file in full, creating parent directories.

    Not atomic: a crash mid-write can leave a truncated file.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write("\n")
    except OSError as e:
        raise StoreIOError(f"Failed to write {path}: {e}") from e


def read_json(path: Path) -> Any:
    """Read a JSON file; FileNotFoundError is left for the caller to decide on."""
    try:
        with open(path, "rb") as f:
            raw = f.read()
    except FileNotFoundError:
        raise
    except OSError as e:
        raise StoreIOError(f"Failed to read {path}: {e}") from e
    try:
        return json.loads(raw.decode("utf-8"))
    except ValueError as e:
        # UnicodeDecodeError is a ValueError too
        raise StoreParseError(f"Failed to parse {path}: {e}") from e


# =============================================================================
# CONFIG STORE
# =============================================================================

class ConfigStore:
    """
    config.json: a flat object of settings.

    A missing file is an empty config, not an error (data.json is treated
    the other way round; see Store.load).
    """

    def __init__(self, paths: StorePaths):
        self.paths = paths
        self.settings: Dict[str, Any] = {}
        self._lock = threading.RLock()

    def load(self) -> None:
        try:
            data = read_json(self.paths.config_file)
        except FileNotFoundError:
            data = {}
        if not isinstance(data, dict):
            raise StoreParseError(f"{self.paths.config_file} must contain a JSON object")
        with self._lock:
            self.settings = data

    def save(self) -> None:
        with self._lock:
            data = dict(self.settings)
        write_json(self.paths.config_file, data)

    def get_setting(self, name: str, default: Any = None) -> Any:
        with self._lock:
            return self.settings.get(name, default)

    def set_setting(self, name: str, value: Any) -> None:
        with self._lock:
            self.settings[name] = value

    def unset_setting(self, name: str) -> None:
        with self._lock:
            self.settings.pop(name, None)


class SecretConfigField:
    """
    One secret string kept RSA-encrypted inside config.json.

    Uses the same keypair as private commands; set() creates it if needed.

    Usage:
        cfg = ConfigStore(paths)
        cfg.load()
        api_key = SecretConfigField(cfg)
        api_key.set("sk-...")     # encrypts and saves config.json
        api_key.get()             # "sk-..."
    """

    def __init__(self, config: ConfigStore, name: str = "gemini_api_key"):
        self.config = config
        self.name = name

    def set(self, value: str) -> None:
        """
        Encrypt `value` and persist it.

        Raises:
            KeyGenerationError, KeyFileIOError: keypair could not be created
            EncryptionError: value longer than crypto.MAX_PAYLOAD_BYTES
            StoreIOError: config.json could not be written
        """
        keys = crypto.ensure_keys_exist(self.config.paths.keys.directory)
        encoded = crypto.encrypt_text(value, keys.public_key)
        self.config.set_setting(self.name, encoded)
        self.config.save()

    def get(self) -> Optional[str]:
        """
        Decrypted value, or None if the secret was never set.

        Key and decryption errors propagate; the ciphertext is never handed
        back in place of the secret.
        """
        encoded = self.config.get_setting(self.name)
        if not encoded:
            return None
        if not isinstance(encoded, str):
            raise StoreParseError(f"Config field '{self.name}' must be a base64 string")
        return crypto.decrypt_text(encoded, self.config.paths.keys.private_key)

    def clear(self) -> None:
        self.config.unset_setting(self.name)
        self.config.save()

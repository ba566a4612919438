"""
cam - Command Stacks with Private (Encrypted) Entries

Keep named stacks of shell commands on local disk. Commands marked private
are RSA-encrypted at rest and only decrypted when explicitly asked for.

Key Features:
- Lazy keys: the first private command creates an RSA-2048 keypair
- Selective encryption: only private records are encrypted (RSA-OAEP/SHA-256)
- Public-only view: private records are filtered out, not masked
- Partial failure: one unreadable record never aborts a load

Components:
- crypto.py: Key management + encrypt/decrypt (one file!)
- codec.py: Per-record load/save policy
- store.py: data.json and stack operations
- config.py: Paths, config.json, encrypted secret field
- cli.py: Command-line interface (uses built-in argparse)

Usage:
    cam pin -p danger rm -rf /tmp/x     # Pin a private command
    cam ls -p danger                    # Show it decrypted
    cam ls                              # Public view: "danger" is not listed
"""

__version__ = "0.1.0"

from .codec import DECRYPTION_FAILED_SENTINEL, Record
from .config import ConfigStore, SecretConfigField, StorePaths
from .store import Store

__all__ = [
    "DECRYPTION_FAILED_SENTINEL",
    "ConfigStore",
    "Record",
    "SecretConfigField",
    "Store",
    "StorePaths",
]

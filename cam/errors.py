"""
cam - Error Types

Every failure the core can report derives from CamError, so callers
(the CLI, tests) can catch one base class.

Key/crypto errors raised while loading or saving a single private record
never escape Store.load()/Store.save(); see codec.py for that policy.
"""


class CamError(Exception):
    """Base class for all cam errors."""


# Keys and crypto

class KeyGenerationError(CamError):
    """RSA key construction failed."""


class KeyFileIOError(CamError):
    """A key file or the key directory could not be read, created or written."""


class PEMDecodeError(CamError):
    """A key file does not contain a parseable PEM key."""


class PublicKeyTypeMismatchError(CamError):
    """The public key file holds a key that is not RSA."""


class EncryptionError(CamError):
    """Payload cannot be encrypted (usually: too long for RSA-OAEP)."""


class DecryptionError(CamError):
    """Ciphertext does not match the key, or is truncated/corrupted."""


# Store

class StoreIOError(CamError):
    """The backing file could not be read or written."""


class StoreParseError(CamError):
    """The backing file is not valid JSON, or a record violates the at-rest format."""


class StoreViewError(CamError):
    """Operation not allowed on a store loaded without private records."""


class StackNotFoundError(CamError):
    """No stack with that name (or the stack is empty)."""


class IndexOutOfBoundsError(CamError):
    """Index is outside the stack."""

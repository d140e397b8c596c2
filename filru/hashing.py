"""Seeded key to filename hashing."""

from __future__ import annotations

import hashlib
from typing import Final

from filru.errors import ConfigError

DEFAULT_HASH_SEED: Final[int] = 0xABCD
DEFAULT_HASH_ALGORITHM: Final[str] = "blake2b"
HASH_ALGORITHMS: Final[frozenset[str]] = frozenset({"blake2b", "sha256"})

_DIGEST_SIZE: Final[int] = 8
_MAX_SEED_BYTES: Final[int] = hashlib.blake2b.MAX_KEY_SIZE


def seed_to_bytes(seed: int | str) -> bytes:
    """Encode a hash seed, rejecting values that cannot key the hash."""
    if isinstance(seed, bool):
        raise ConfigError("Hash seed must be an integer or string, not a bool")
    if isinstance(seed, int):
        if seed < 0 or seed >= 2**64:
            raise ConfigError(f"Integer hash seed must fit in 64 bits: {seed}")
        return seed.to_bytes(8, "big")
    if isinstance(seed, str):
        encoded = seed.encode("utf-8")
        if not encoded:
            raise ConfigError("String hash seed must not be empty")
        if len(encoded) > _MAX_SEED_BYTES:
            raise ConfigError(
                f"String hash seed must be at most {_MAX_SEED_BYTES} bytes"
            )
        return encoded
    raise ConfigError(f"Unsupported hash seed type: {type(seed).__name__}")


class KeyHasher:
    """Map cache keys to fixed-width lowercase hex filenames.

    ``blake2b`` produces a 64-bit keyed digest (16 hex characters). Collisions
    are possible in principle; callers that must resist deliberately
    constructed collisions can select ``sha256`` (64 hex characters).
    """

    def __init__(
        self,
        seed: int | str = DEFAULT_HASH_SEED,
        algorithm: str = DEFAULT_HASH_ALGORITHM,
    ) -> None:
        if algorithm not in HASH_ALGORITHMS:
            raise ConfigError(
                f"Unknown hash algorithm {algorithm!r}; "
                f"expected one of {sorted(HASH_ALGORITHMS)}"
            )
        self._seed = seed_to_bytes(seed)
        self._algorithm = algorithm

    @property
    def algorithm(self) -> str:
        return self._algorithm

    @property
    def width(self) -> int:
        """Number of hex characters in every filename."""
        return _DIGEST_SIZE * 2 if self._algorithm == "blake2b" else 64

    def hash(self, key: str) -> str:
        data = key.encode("utf-8", "surrogatepass")
        if self._algorithm == "blake2b":
            digest = hashlib.blake2b(data, digest_size=_DIGEST_SIZE, key=self._seed)
        else:
            digest = hashlib.sha256(self._seed + data)
        return digest.hexdigest()

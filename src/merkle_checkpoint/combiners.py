"""Combining functions for internal Merkle nodes."""

import struct
import zlib
from abc import ABC, abstractmethod

# Checksums are zero-extended into an unsigned 64-bit big-endian value
_DIGEST = struct.Struct(">Q")


class Combiner(ABC):
    """Abstract base class for internal node combining functions."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the registry name of the combiner."""
        ...

    @property
    @abstractmethod
    def digest_size(self) -> int:
        """Return the size in bytes of a combined signature."""
        ...

    @abstractmethod
    def combine(self, left: bytes, right: bytes) -> bytes:
        """
        Combine two child signatures into a parent signature.

        Args:
            left: Signature of the left child
            right: Signature of the right child

        Returns:
            Parent signature (order-sensitive: combine(a, b) != combine(b, a))
        """
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class Adler32Combiner(Combiner):
    """Adler-32 over left then right, emitted as an 8-byte big-endian integer."""

    @property
    def name(self) -> str:
        return "adler32"

    @property
    def digest_size(self) -> int:
        return _DIGEST.size

    def combine(self, left: bytes, right: bytes) -> bytes:
        checksum = zlib.adler32(right, zlib.adler32(left))
        return _DIGEST.pack(checksum)


class Crc32Combiner(Combiner):
    """CRC-32 over left then right, emitted as an 8-byte big-endian integer."""

    @property
    def name(self) -> str:
        return "crc32"

    @property
    def digest_size(self) -> int:
        return _DIGEST.size

    def combine(self, left: bytes, right: bytes) -> bytes:
        checksum = zlib.crc32(right, zlib.crc32(left))
        return _DIGEST.pack(checksum)


COMBINERS: dict[str, type[Combiner]] = {
    "adler32": Adler32Combiner,
    "crc32": Crc32Combiner,
}

DEFAULT_COMBINER = "adler32"


def get_combiner(name: str = DEFAULT_COMBINER) -> Combiner:
    """
    Factory function to get a combiner by name.

    Args:
        name: Registry name of the combiner

    Returns:
        A Combiner instance

    Raises:
        ValueError: If no combiner is registered under that name
    """
    try:
        return COMBINERS[name]()
    except KeyError:
        raise ValueError(
            f"Combiner '{name}' not supported. "
            f"Available: {', '.join(sorted(COMBINERS))}"
        ) from None

"""Word-addressed main memory and program image loading."""

from __future__ import annotations

from array import array
from collections.abc import Iterable
from os import PathLike

DEFAULT_WORDS = 0x400000

_MASK32 = 0xFFFFFFFF


def to_unsigned32(value: int) -> int:
    """Return ``value`` reduced to an unsigned 32-bit integer."""
    return value & _MASK32


def to_signed32(value: int) -> int:
    """Return ``value`` reduced to a signed (two's complement) 32-bit integer."""
    value &= _MASK32
    return value - 0x100000000 if value & 0x80000000 else value


def decode_program(data: bytes) -> list[int]:
    """Split a big-endian program image into signed 32-bit words.

    A trailing group of fewer than four bytes is ignored.
    """
    usable = len(data) - len(data) % 4
    return [
        to_signed32(int.from_bytes(data[start:start + 4], "big"))
        for start in range(0, usable, 4)
    ]


def load_program(path: str | PathLike[str]) -> list[int]:
    """Read a program image file and return its words."""
    with open(path, "rb") as handle:
        return decode_program(handle.read())


class Memory:
    """Main memory holding signed 32-bit words, addressed by byte address."""

    def __init__(self, size: int = DEFAULT_WORDS) -> None:
        if size <= 0:
            raise ValueError("memory size must be positive")
        self._words = array("l", [0]) * size

    def __len__(self) -> int:
        return len(self._words)

    def _index(self, address: int) -> int:
        if address < 0:
            raise IndexError(f"address {address:#x} is out of range")
        index = address // 4
        if index >= len(self._words):
            raise IndexError(f"address {address:#x} is out of range")
        return index

    def read_word(self, address: int) -> int:
        """Return the word holding byte ``address``."""
        return self._words[self._index(address)]

    def write_word(self, address: int, value: int) -> None:
        """Store ``value`` in the word holding byte ``address``."""
        self._words[self._index(address)] = to_signed32(value)

    def load(self, words: Iterable[int]) -> None:
        """Copy ``words`` into memory starting at address zero."""
        values = [to_signed32(word) for word in words]
        if len(values) > len(self._words):
            raise ValueError(
                f"program of {len(values)} words does not fit in "
                f"{len(self._words)} words of memory"
            )
        self._words[: len(values)] = array("l", values)
"""Write-back caches of 64-byte lines in front of main memory."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from .memory import Memory, to_signed32

LINE_WORDS = 16
LINE_BYTES = LINE_WORDS * 4


@dataclass
class CacheLine:
    """One cache line of sixteen words."""

    tag: int = 0
    valid: bool = False
    dirty: bool = False
    referenced: bool = False
    data: list[int] = field(default_factory=lambda: [0] * LINE_WORDS)


class Cache(ABC):
    """Common hit/miss logic and statistics for a write-back cache."""

    def __init__(self, memory: Memory, lines: int, hit_cost: int, miss_cost: int) -> None:
        if lines <= 0:
            raise ValueError("a cache needs at least one line")
        self.memory = memory
        self.lines = [CacheLine() for _ in range(lines)]
        self.hit_cost = hit_cost
        self.miss_cost = miss_cost
        self.hits = 0
        self.misses = 0
        self.cycles = 0

    @property
    def accesses(self) -> int:
        return self.hits + self.misses

    @staticmethod
    def _check(address: int) -> None:
        if address < 0:
            raise IndexError(f"address {address:#x} is out of range")

    @staticmethod
    def _offset(address: int) -> int:
        return (address % LINE_BYTES) // 4

    def _fill(self, line: CacheLine, address: int) -> None:
        base = address - address % LINE_BYTES
        line.data = [self.memory.read_word(base + 4 * n) for n in range(LINE_WORDS)]

    def _write_back(self, line: CacheLine, base: int) -> None:
        for n, word in enumerate(line.data):
            self.memory.write_word(base + 4 * n, word)

    @abstractmethod
    def _find(self, address: int) -> CacheLine | None:
        """Return the valid line holding ``address``, if any."""

    @abstractmethod
    def _allocate(self, address: int) -> CacheLine:
        """Pick a line for ``address``, evicting if needed, and fill it."""

    def _hit(self, line: CacheLine) -> None:
        line.referenced = True
        self.hits += 1
        self.cycles += self.hit_cost

    def _miss(self) -> None:
        self.misses += 1
        self.cycles += self.miss_cost

    def read(self, address: int) -> int:
        """Return the word at ``address``, going through the cache."""
        self._check(address)
        line = self._find(address)
        if line is not None:
            self._hit(line)
            return line.data[self._offset(address)]
        self._miss()
        self._allocate(address)
        return self.memory.read_word(address)

    def write(self, address: int, value: int) -> None:
        """Store ``value`` at ``address`` in the cache, marking the line dirty."""
        self._check(address)
        value = to_signed32(value)
        line = self._find(address)
        if line is not None:
            self._hit(line)
        else:
            self._miss()
            line = self._allocate(address)
        line.dirty = True
        line.data[self._offset(address)] = value

    def hit_rate(self) -> float:
        """Percentage of accesses that hit; 0.0 before any access."""
        if not self.accesses:
            return 0.0
        return self.hits / self.accesses * 100


class DirectMappedCache(Cache):
    """Each block maps to exactly one line, chosen by its block number."""

    def __init__(
        self,
        memory: Memory,
        lines: int = 128,
        hit_cost: int = 1,
        miss_cost: int = 1000,
    ) -> None:
        super().__init__(memory, lines, hit_cost, miss_cost)

    def _split(self, address: int) -> tuple[int, int]:
        block = address // LINE_BYTES
        return block // len(self.lines), block % len(self.lines)

    def _find(self, address: int) -> CacheLine | None:
        tag, index = self._split(address)
        line = self.lines[index]
        if line.valid and line.tag == tag:
            return line
        return None

    def _allocate(self, address: int) -> CacheLine:
        tag, index = self._split(address)
        line = self.lines[index]
        if line.valid and line.dirty:
            self._write_back(line, (line.tag * len(self.lines) + index) * LINE_BYTES)
        line.valid = True
        line.tag = tag
        self._fill(line, address)
        return line


class FullyAssociativeCache(Cache):
    """Any block may sit in any line; victims are chosen by second chance."""

    def __init__(
        self,
        memory: Memory,
        lines: int = 64,
        hit_cost: int = 1,
        miss_cost: int = 1000,
    ) -> None:
        super().__init__(memory, lines, hit_cost, miss_cost)
        self._hand = 0

    @staticmethod
    def _tag(address: int) -> int:
        return (address // LINE_BYTES) & 0xFFFFFFF

    def _find(self, address: int) -> CacheLine | None:
        tag = self._tag(address)
        return next((line for line in self.lines if line.valid and line.tag == tag), None)

    def _advance(self) -> None:
        self._hand = (self._hand + 1) % len(self.lines)

    def _allocate(self, address: int) -> CacheLine:
        tag = self._tag(address)
        empty = next((line for line in self.lines if not line.valid), None)
        if empty is not None:
            empty.valid = True
            empty.tag = tag
            self._fill(empty, address)
            return empty
        while True:
            line = self.lines[self._hand]
            if line.referenced:
                line.referenced = False
                self._advance()
                continue
            if line.dirty:
                self._write_back(line, line.tag * LINE_BYTES)
            line.tag = tag
            self._fill(line, address)
            self._advance()
            return line
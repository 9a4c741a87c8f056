"""Set-associative write-back cache with second-chance replacement per set."""

from __future__ import annotations

from .cache import LINE_BYTES, Cache, CacheLine
from .memory import Memory


class SetAssociativeCache(Cache):
    """A block maps to one set and may occupy any way of that set."""

    def __init__(
        self,
        memory: Memory,
        sets: int = 32,
        ways: int = 2,
        hit_cost: int = 1,
        miss_cost: int = 1000,
    ) -> None:
        if sets <= 0 or ways <= 0:
            raise ValueError("a set-associative cache needs at least one set and one way")
        super().__init__(memory, sets * ways, hit_cost, miss_cost)
        self.sets = sets
        self.ways = ways
        self._groups = [self.lines[i * ways:(i + 1) * ways] for i in range(sets)]
        self._hands = [0] * sets

    def _split(self, address: int) -> tuple[int, int]:
        block = address // LINE_BYTES
        return block // self.sets, block % self.sets

    def _find(self, address: int) -> CacheLine | None:
        tag, index = self._split(address)
        return next(
            (line for line in self._groups[index] if line.valid and line.tag == tag),
            None,
        )

    def _advance(self, index: int) -> None:
        self._hands[index] = (self._hands[index] + 1) % self.ways

    def _allocate(self, address: int) -> CacheLine:
        tag, index = self._split(address)
        group = self._groups[index]
        empty = next((line for line in group if not line.valid), None)
        if empty is not None:
            empty.valid = True
            empty.tag = tag
            self._fill(empty, address)
            return empty
        while True:
            line = group[self._hands[index]]
            if line.referenced:
                line.referenced = False
                self._advance(index)
                continue
            if line.dirty:
                self._write_back(line, (line.tag * self.sets + index) * LINE_BYTES)
            line.tag = tag
            self._fill(line, address)
            self._advance(index)
            return line
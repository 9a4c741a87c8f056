"""Two-bit branch prediction table and a table of known jump targets."""

from __future__ import annotations

from dataclasses import dataclass

STRONG_NOT_TAKEN = 0
WEAK_NOT_TAKEN = 1
WEAK_TAKEN = 2
STRONG_TAKEN = 3


@dataclass
class _BranchEntry:
    target: int
    state: int


class BranchPredictor:
    """A bounded table of branches, each with a saturating two-bit counter."""

    def __init__(self, slots: int = 10) -> None:
        if slots <= 0:
            raise ValueError("a branch predictor needs at least one slot")
        self.slots = slots
        self._entries: dict[int, _BranchEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, pc: object) -> bool:
        return pc in self._entries

    def state(self, pc: int) -> int:
        """Counter state of the branch at ``pc``; unknown branches are strongly not taken."""
        entry = self._entries.get(pc)
        return entry.state if entry is not None else STRONG_NOT_TAKEN

    def predicted_target(self, pc: int) -> int | None:
        """Target to fetch next if the branch at ``pc`` is predicted taken, else None."""
        entry = self._entries.get(pc)
        if entry is not None and entry.state >= WEAK_TAKEN:
            return entry.target
        return None

    def update(self, pc: int, target: int, taken: bool) -> None:
        """Record the outcome of the branch at ``pc``.

        A new branch starts strongly taken or strongly not taken; a known one
        moves its counter one step. New branches are dropped once the table is full.
        """
        entry = self._entries.get(pc)
        if entry is None:
            if len(self._entries) < self.slots:
                state = STRONG_TAKEN if taken else STRONG_NOT_TAKEN
                self._entries[pc] = _BranchEntry(target, state)
            return
        if taken:
            entry.state = min(entry.state + 1, STRONG_TAKEN)
        else:
            entry.state = max(entry.state - 1, STRONG_NOT_TAKEN)


class JumpTable:
    """A bounded table mapping jump instruction addresses to their targets."""

    def __init__(self, slots: int = 5) -> None:
        if slots <= 0:
            raise ValueError("a jump table needs at least one slot")
        self.slots = slots
        self._targets: dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._targets)

    def __contains__(self, pc: object) -> bool:
        return pc in self._targets

    def target(self, pc: int) -> int:
        """Target recorded for the jump at ``pc``; KeyError if unknown."""
        try:
            return self._targets[pc]
        except KeyError:
            raise KeyError(f"no jump recorded at {pc:#x}") from None

    def add(self, pc: int, target: int) -> None:
        """Record a jump; a known jump keeps its target, and a full table ignores new ones."""
        if pc in self._targets or len(self._targets) >= self.slots:
            return
        self._targets[pc] = target
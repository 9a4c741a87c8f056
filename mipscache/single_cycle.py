"""Single-cycle MIPS interpreter with optional cache in front of memory."""

from __future__ import annotations

import operator
from collections.abc import Callable
from dataclasses import dataclass
from typing import TextIO

from .cache import Cache
from .memory import Memory, to_signed32, to_unsigned32

HALT_PC = 0xFFFFFFFF
STACK_POINTER = 0x1000000

FETCH_DECODE_CYCLES = 2
EXECUTE_CYCLES = 3


def _hex(value: int) -> str:
    return format(to_unsigned32(value), "x")


@dataclass(frozen=True)
class Instruction:
    """All fields of one decoded instruction word."""

    word: int
    opcode: int
    rs: int
    rt: int
    rd: int
    shamt: int
    funct: int
    imm: int
    addr: int
    s_imm: int
    z_imm: int
    b_addr: int
    j_addr: int

    @classmethod
    def decode(cls, word: int, pc: int) -> Instruction:
        """Decode ``word`` fetched from address ``pc``."""
        bits = to_unsigned32(word)
        imm = bits & 0xFFFF
        addr = bits & 0x03FFFFFF
        s_imm = to_signed32(imm | 0xFFFF0000) if imm & 0x8000 else imm
        return cls(
            word=to_signed32(word),
            opcode=(bits >> 26) & 0x3F,
            rs=(bits >> 21) & 0x1F,
            rt=(bits >> 16) & 0x1F,
            rd=(bits >> 11) & 0x1F,
            shamt=(bits >> 6) & 0x1F,
            funct=bits & 0x3F,
            imm=imm,
            addr=addr,
            s_imm=s_imm,
            z_imm=imm,
            b_addr=s_imm * 4,
            j_addr=to_unsigned32(((pc + 4) & 0xF0000000) | (addr << 2)),
        )


@dataclass
class ExecutionStats:
    """Counters gathered while a program runs."""

    cycles: int = 0
    r_type: int = 0
    i_type: int = 0
    j_type: int = 0
    nops: int = 0
    memory_ops: int = 0
    branches: int = 0
    branches_taken: int = 0

    @property
    def instructions(self) -> int:
        return self.r_type + self.i_type + self.j_type + self.nops


_Binary = Callable[[int, int], int]

# opcode -> (mnemonic, symbol, operation, uses zero-extended immediate)
_I_BINARY: dict[int, tuple[str, str, _Binary, bool]] = {
    0x08: ("AddI", "+", operator.add, False),
    0x09: ("AddIU", "+", operator.add, False),
    0x0C: ("ANDI", "&", operator.and_, True),
    0x0D: ("ORI", "|", operator.or_, True),
    0x0A: ("SLTI", "<", lambda a, b: int(a < b), False),
    0x0B: ("SLTIU", "<", lambda a, b: int(a < b), False),
}

# funct -> (mnemonic, symbol, operation)
_R_BINARY: dict[int, tuple[str, str, _Binary]] = {
    0x20: ("Add", "+", operator.add),
    0x21: ("AddU", "+", operator.add),
    0x24: ("AND", "&", operator.and_),
    0x25: ("OR", "|", operator.or_),
    # The result is the logical negation of the OR, as the machine defines it.
    0x27: ("NOR", "!|", lambda a, b: int(not (a | b))),
    0x2A: ("SLT", "<", lambda a, b: int(a < b)),
    0x2B: ("SLTU", "<", lambda a, b: int(a < b)),
    0x22: ("Sub", "-", operator.sub),
    0x23: ("SubU", "-", operator.sub),
}


class SingleCycleCPU:
    """Executes one instruction per step, optionally through a cache."""

    def __init__(
        self,
        memory: Memory,
        cache: Cache | None = None,
        trace: TextIO | None = None,
    ) -> None:
        self.memory = memory
        self.cache = cache
        self.trace = trace
        self.registers = [0] * 32
        self.registers[29] = STACK_POINTER
        self.registers[31] = to_signed32(HALT_PC)
        self.pc = 0
        self.stats = ExecutionStats()

    @property
    def halted(self) -> bool:
        return self.pc == HALT_PC

    def _log(self, message: str) -> None:
        if self.trace is not None:
            self.trace.write(f"@ 0x{self.pc:x} {message}\n")

    def _read(self, address: int) -> int:
        if self.cache is not None:
            return self.cache.read(address)
        return self.memory.read_word(address)

    def _write(self, address: int, value: int) -> None:
        if self.cache is not None:
            self.cache.write(address, value)
        else:
            self.memory.write_word(address, value)

    def _advance(self) -> None:
        self.pc = to_unsigned32(self.pc + 4)

    def step(self) -> Instruction:
        """Fetch, decode and execute the instruction at ``pc``."""
        if self.halted:
            raise RuntimeError("the program has already finished")
        cache_before = self.cache.cycles if self.cache is not None else 0
        word = self._read(self.pc)
        self.stats.cycles += FETCH_DECODE_CYCLES
        inst = Instruction.decode(word, self.pc)
        self._execute(inst)
        self.stats.cycles += EXECUTE_CYCLES
        if self.cache is not None:
            self.stats.cycles += self.cache.cycles - cache_before
        return inst

    def run(self) -> ExecutionStats:
        """Execute until the program returns to the halt address."""
        while not self.halted:
            self.step()
        return self.stats

    def _execute(self, inst: Instruction) -> None:
        regs = self.registers
        op = inst.opcode
        if op in _I_BINARY:
            name, symbol, func, zero_ext = _I_BINARY[op]
            operand = inst.z_imm if zero_ext else inst.s_imm
            result = to_signed32(func(regs[inst.rs], operand))
            self._log(
                f"{name}: R[{inst.rs}]: 0x{_hex(regs[inst.rs])} {symbol} "
                f"0x{_hex(operand)} -> R[{inst.rt}]: 0x{_hex(result)}"
            )
            regs[inst.rt] = result
            self._advance()
            self.stats.i_type += 1
        elif op in (0x4, 0x5):
            self._branch(inst)
        elif op == 0x2:
            self._log(f"Jump: j_addr: 0x{_hex(inst.j_addr)} -> pc: 0x{_hex(inst.j_addr)}")
            self.pc = inst.j_addr
            self.stats.j_type += 1
        elif op == 0x3:
            link = to_signed32(self.pc + 8)
            self._log(f"JAL: pc + 8 -> R[31]: 0x{_hex(link)}, j_addr: 0x{_hex(inst.j_addr)}")
            regs[31] = link
            self.pc = inst.j_addr
            self.stats.j_type += 1
        elif op == 0xF:
            result = to_signed32(inst.imm << 16)
            self._log(f"LUI: imm: 0x{inst.imm:x} << 16 -> R[{inst.rt}]: 0x{_hex(result)}")
            regs[inst.rt] = result
            self._advance()
            self.stats.i_type += 1
        elif op == 0x23:
            address = to_signed32(regs[inst.rs] + inst.s_imm)
            self._log(
                f"LW: M[R[{inst.rs}]: 0x{_hex(regs[inst.rs])} + 0x{_hex(inst.s_imm)}] "
                f"-> R[{inst.rt}]"
            )
            regs[inst.rt] = self._read(address)
            self._advance()
            self.stats.memory_ops += 1
            self.stats.i_type += 1
        elif op == 0x2B:
            address = to_signed32(regs[inst.rs] + inst.s_imm)
            self._log(
                f"SW: R[{inst.rt}]: 0x{_hex(regs[inst.rt])} -> "
                f"M[R[{inst.rs}]: 0x{_hex(regs[inst.rs])} + 0x{_hex(inst.s_imm)}]"
            )
            self._write(address, regs[inst.rt])
            self._advance()
            self.stats.memory_ops += 1
            self.stats.i_type += 1
        elif op == 0x0:
            self._special(inst)
        else:
            self._nop()

    def _branch(self, inst: Instruction) -> None:
        regs = self.registers
        equal = regs[inst.rs] == regs[inst.rt]
        taken = equal if inst.opcode == 0x4 else not equal
        target = to_unsigned32(self.pc + 4 + inst.b_addr) if taken else to_unsigned32(self.pc + 4)
        name, symbol = ("BEQ", "==") if inst.opcode == 0x4 else ("BNE", "!=")
        self._log(
            f"{name}: if (R[{inst.rs}]: 0x{_hex(regs[inst.rs])} {symbol} "
            f"R[{inst.rt}]: 0x{_hex(regs[inst.rt])}) -> pc: 0x{target:x}"
        )
        if taken:
            self.stats.branches_taken += 1
        self.pc = target
        self.stats.branches += 1
        self.stats.i_type += 1

    def _special(self, inst: Instruction) -> None:
        regs = self.registers
        funct = inst.funct
        if funct in _R_BINARY:
            name, symbol, func = _R_BINARY[funct]
            result = to_signed32(func(regs[inst.rs], regs[inst.rt]))
            self._log(
                f"{name}: R[{inst.rs}]: 0x{_hex(regs[inst.rs])} {symbol} "
                f"R[{inst.rt}]: 0x{_hex(regs[inst.rt])} -> R[{inst.rd}]: 0x{_hex(result)}"
            )
            regs[inst.rd] = result
        elif funct == 0x08:
            target = to_unsigned32(regs[inst.rs])
            self._log(f"JR: R[{inst.rs}]: 0x{target:x} -> pc: 0x{target:x}")
            self.pc = target
            self.stats.r_type += 1
            return
        elif funct in (0x01, 0x02):
            if funct == 0x01:
                name, result = "SLL", to_signed32(regs[inst.rt] << inst.shamt)
            else:
                name, result = "SRL", to_signed32(regs[inst.rt] >> inst.shamt)
            self._log(
                f"{name}: R[{inst.rt}]: 0x{_hex(regs[inst.rt])} shamt: 0x{inst.shamt:x} "
                f"-> R[{inst.rd}]: 0x{_hex(result)}"
            )
            regs[inst.rd] = result
        else:
            self._nop()
            return
        self._advance()
        self.stats.r_type += 1

    def _nop(self) -> None:
        self._log("Nop")
        self.stats.nops += 1
        self._advance()

    def report(self) -> str:
        """Return the end-of-run summary."""
        s = self.stats
        lines = [
            f"Total cycle num: {s.cycles}",
            f"Final return value Regs[2]: 0x{_hex(self.registers[2])}",
            f"Num of Executed Inst: {s.instructions}",
            f"(R_inst: {s.r_type}, I_inst: {s.i_type}, J_inst:{s.j_type}, Nop: {s.nops})",
            f"Memory Access inst: {s.memory_ops}",
            f"Num of Branch: {s.branches}",
            f"Num of Branch taken: {s.branches_taken}",
        ]
        if self.cache is not None:
            lines += [
                "",
                f"cache hit / miss num: {self.cache.hits} / {self.cache.misses}",
                f"cache hit rate: {self.cache.hit_rate():.6f}",
            ]
        return "\n".join(lines) + "\n"
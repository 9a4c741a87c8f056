"""Five-stage pipelined MIPS model with forwarding, branch prediction and a cache."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from .cache import Cache
from .memory import Memory, to_signed32, to_unsigned32
from .predictor import WEAK_TAKEN, BranchPredictor, JumpTable
from .set_associative import SetAssociativeCache

HALT_PC = 0xFFFFFFFF
STACK_POINTER = 0x100000

# No control hazard, a taken branch or jump to resolve, a mispredicted taken branch.
_CLEAR, _REDIRECT, _MISPREDICT = 0, 1, 2

_LOADS = (0x23, 0x24, 0x25, 0x30)
_STORES = (0x2B, 0x28, 0x38, 0x29)

_FUNCT_OPS = {
    0x20: 1, 0x21: 1, 0x24: 2, 0x25: 3, 0x27: 10, 0x2A: 4, 0x2B: 4,
    0x00: 5, 0x02: 6, 0x03: 6, 0x22: 7, 0x23: 7, 0x08: 12, 0x09: 12,
}
_OPCODE_OPS = {
    0x08: 1, 0x09: 1, 0x24: 1, 0x25: 1, 0x30: 1, 0x23: 1, 0x28: 1, 0x38: 1,
    0x29: 1, 0x2B: 1, 0x0C: 2, 0x04: 8, 0x20: 8, 0x05: 9, 0x0D: 3,
    0x0A: 4, 0x0B: 4, 0x0F: 11,
}


def alu(op: int, a: int, b: int) -> int:
    """Apply ALU operation number ``op`` to two signed 32-bit operands."""
    if op == 1:
        result = a + b
    elif op == 2:
        result = a & b
    elif op == 3:
        result = a | b
    elif op == 4:
        result = int(a < b)
    elif op == 5:
        result = a << b
    elif op == 6:
        result = a >> b
    elif op == 7:
        result = a - b
    elif op == 8:
        result = int(a == b)
    elif op == 9:
        result = int(a != b)
    elif op == 10:
        result = ~(a | b)
    elif op == 11:
        result = (b << 16) & 0xFFFF0000
    elif op == 12:
        result = a
    else:
        result = 0
    return to_signed32(result)


@dataclass(frozen=True)
class ControlSignals:
    """Main control unit outputs for one instruction."""

    reg_dst: bool = False
    jump: bool = False
    branch: bool = False
    mem_read: bool = False
    mem_to_reg: bool = False
    alu_op: bool = False
    mem_write: bool = False
    alu_src: bool = False
    reg_write: bool = False

    @classmethod
    def for_instruction(cls, opcode: int, funct: int) -> ControlSignals:
        """Derive the control signals from an opcode and function field."""
        jr = opcode == 0 and funct == 0x8
        return cls(
            reg_dst=opcode == 0,
            jump=(opcode == 0 and funct in (0x8, 0x9)) or opcode in (0x2, 0x3),
            branch=opcode in (0x4, 0x5, 0x20),
            mem_read=opcode in _LOADS,
            mem_to_reg=opcode in _LOADS,
            alu_op=opcode == 0,
            mem_write=opcode in _STORES,
            alu_src=opcode not in (0x0, 0x4, 0x5),
            reg_write=not (opcode in (0x2B, 0x4, 0x5, 0x2, 0x28, 0x38, 0x29) or jr),
        )


def alu_control(signals: ControlSignals, opcode: int, funct: int) -> int:
    """ALU operation number for an instruction; 0 if it has none."""
    if signals.alu_op:
        return _FUNCT_OPS.get(funct, 0)
    return _OPCODE_OPS.get(opcode, 0)


@dataclass
class Latch:
    """Contents of one pipeline register."""

    pc: int = 0
    instruction: int = 0
    address: int = 0
    opcode: int = 0
    rs: int = 0
    rt: int = 0
    rd: int = 0
    immediate: int = 0
    funct: int = 0
    shamt: int = 0
    signals: ControlSignals = field(default_factory=ControlSignals)
    alu_op: int = 0
    read_register1: int = 0
    read_register2: int = 0
    write_register: int = 0
    write_data: int = 0
    read_data1: int = 0
    read_data2: int = 0
    mem_address: int = 0
    mem_write_data: int = 0
    mem_read_data: int = 0
    alu_result: int = 0


@dataclass
class PipelineStats:
    """Counters gathered while the pipeline runs."""

    cycles: int = 0
    r_type: int = 0
    i_type: int = 0
    j_type: int = 0
    memory_accesses: int = 0
    branches: int = 0
    branches_satisfied: int = 0
    predict_success: int = 0
    predict_fail: int = 0


class PipelineCPU:
    """Runs a program one clock cycle at a time through five stages."""

    def __init__(self, memory: Memory, cache: Cache | None = None) -> None:
        self.memory = memory
        self.cache = cache if cache is not None else SetAssociativeCache(memory)
        self.registers = [0] * 32
        self.registers[29] = STACK_POINTER
        self.registers[31] = to_signed32(HALT_PC)
        self.pc = 0
        self.npc = 0
        self.stats = PipelineStats()
        self.predictor = BranchPredictor(10)
        self.jumps = JumpTable(5)
        self._hazard = _CLEAR
        self._forward: list[tuple[int, int]] = [(0, 0)] * 3
        self._fetch_latch = Latch()
        self._if_id = Latch()
        self._id_ex = Latch()
        self._ex_mem = Latch()
        self._mem_wb = Latch()

    @property
    def halted(self) -> bool:
        return self.pc == HALT_PC

    def step(self) -> None:
        """Advance the pipeline by one clock cycle."""
        if self.halted:
            raise RuntimeError("the program has already finished")
        self._fetch(self._ex_mem)
        self._decode()
        next_id_ex = replace(self._if_id)
        self._execute()
        next_ex_mem = replace(self._id_ex)
        self._memory_access(self._ex_mem)
        next_mem_wb = replace(self._ex_mem)
        self._write_back(self._mem_wb)
        self._if_id = replace(self._fetch_latch)
        self._id_ex = next_id_ex
        self._ex_mem = next_ex_mem
        self._mem_wb = next_mem_wb
        self.stats.cycles += 1

    def run(self) -> PipelineStats:
        """Cycle until the program returns to the halt address."""
        while not self.halted:
            self.step()
        return self.stats

    def _fetch(self, ex: Latch) -> None:
        latch = self._fetch_latch
        if self._hazard != _REDIRECT:
            latch.pc = self.npc
            latch.instruction = self.cache.read(self.npc)
            self.stats.memory_accesses += 1
        if ex.opcode == 0 and ex.funct in (0x8, 0x9):
            self.npc = to_unsigned32(ex.read_data1)
        elif ex.signals.jump:
            self.npc = to_unsigned32(ex.address)
        elif ex.signals.branch and ex.alu_result & 1:
            self.npc = to_unsigned32((ex.immediate << 2) + ex.pc + 4)
        else:
            self.npc = to_unsigned32(latch.pc + 4)
        if self._hazard == _REDIRECT:
            if self.npc == HALT_PC:
                self._fetch_latch = Latch()
                self.pc = self.npc
                return
            latch.pc = self.npc
            latch.instruction = self.cache.read(self.npc)
            self.npc = to_unsigned32(self.npc + 4)
            self.stats.memory_accesses += 1
        target = self.predictor.predicted_target(latch.pc)
        if target is not None:
            self.npc = to_unsigned32(target)
        if latch.pc in self.jumps:
            self.npc = to_unsigned32(self.jumps.target(latch.pc))

    def _decode(self) -> None:
        if self._hazard != _CLEAR:
            self._if_id = Latch()
            return
        latch = self._if_id
        bits = to_unsigned32(latch.instruction)
        latch.address = to_unsigned32(((bits & 0x03FFFFFF) << 2) | ((latch.pc + 4) & 0xF0000000))
        latch.opcode = bits >> 26
        latch.rs = (bits >> 21) & 0x1F
        latch.rt = (bits >> 16) & 0x1F
        latch.rd = (bits >> 11) & 0x1F
        latch.immediate = bits & 0xFFFF
        latch.funct = bits & 0x3F
        latch.shamt = (bits >> 6) & 0x1F
        latch.signals = ControlSignals.for_instruction(latch.opcode, latch.funct)
        self._count(latch)
        latch.alu_op = alu_control(latch.signals, latch.opcode, latch.funct)
        if latch.opcode not in (0xC, 0xD, 0xF) and latch.immediate & 0x8000:
            latch.immediate -= 0x10000
        if latch.opcode == 0x3:
            latch.write_register = 31
        else:
            latch.write_register = latch.rd if latch.signals.reg_dst else latch.rt
        latch.read_register1 = latch.rs
        latch.read_register2 = latch.rt
        latch.read_data1 = self.registers[latch.rs]
        latch.read_data2 = self.registers[latch.rt]

    def _count(self, latch: Latch) -> None:
        if latch.opcode == 0:
            if any((latch.rs, latch.rt, latch.rd, latch.shamt, latch.funct)):
                self.stats.r_type += 1
        elif latch.opcode in (0x2, 0x3):
            self.stats.j_type += 1
        else:
            self.stats.i_type += 1
        if latch.signals.branch:
            self.stats.branches += 1

    def _push_forward(self, register: int, value: int) -> None:
        self._forward = [(register, value)] + self._forward[:2]

    def _forward_from_execute(self, latch: Latch) -> None:
        signals = latch.signals
        if not signals.reg_write:
            self._push_forward(0, 0)
        elif signals.jump:
            self._push_forward(latch.write_register, to_signed32(latch.pc + 8))
        elif not signals.mem_to_reg:
            self._push_forward(latch.write_register, latch.alu_result)

    def _forwarded(self, register: int, data: int) -> int:
        return next((value for reg, value in self._forward if reg == register), data)

    def _run_alu(self, latch: Latch, a: int, b: int) -> None:
        latch.alu_result = alu(latch.alu_op, a, b)
        if latch.alu_op in (8, 9) and latch.alu_result:
            self.stats.branches_satisfied += 1

    def _execute(self) -> None:
        if self._hazard != _CLEAR:
            self._id_ex = Latch()
            self._forward_from_execute(self._id_ex)
            self._hazard = _CLEAR
            return
        latch = self._id_ex
        latch.read_data1 = self._forwarded(latch.read_register1, latch.read_data1)
        latch.read_data2 = self._forwarded(latch.read_register2, latch.read_data2)
        second = latch.immediate if latch.signals.alu_src else latch.read_data2
        if latch.opcode in (0xC, 0xD):
            self._run_alu(latch, latch.read_data1, second)
            self._forward_from_execute(latch)
            return
        if latch.opcode == 0 and latch.funct in (0x0, 0x2, 0x3):
            self._run_alu(latch, latch.read_data2, latch.shamt)
            self._forward_from_execute(latch)
            return
        self._run_alu(latch, latch.read_data1, second)
        self._forward_from_execute(latch)
        if latch.signals.jump:
            if latch.pc in self.jumps:
                latch.signals = replace(latch.signals, jump=False)
            else:
                self._hazard = _REDIRECT
                if not latch.signals.reg_dst:
                    self.jumps.add(latch.pc, latch.address)
        target = to_unsigned32((latch.immediate << 2) + latch.pc + 4)
        taken = bool(latch.signals.branch and latch.alu_result)
        if self.predictor.state(latch.pc) < WEAK_TAKEN:
            if taken:
                self._hazard = _REDIRECT
                self.predictor.update(latch.pc, target, True)
                self.stats.predict_fail += 1
            elif latch.signals.branch:
                self.stats.predict_success += 1
                self.predictor.update(latch.pc, target, False)
        elif taken:
            self.stats.predict_success += 1
            self.predictor.update(latch.pc, target, True)
            latch.signals = replace(latch.signals, branch=False)
        else:
            self._hazard = _MISPREDICT
            self.npc = to_unsigned32(latch.pc + 4)
            self.stats.predict_fail += 1
            self.predictor.update(latch.pc, target, False)

    def _memory_access(self, latch: Latch) -> None:
        latch.mem_address = latch.alu_result
        latch.mem_write_data = latch.read_data2
        signals = latch.signals
        if not (signals.mem_write or signals.mem_read):
            latch.mem_read_data = 0
            return
        self.stats.memory_accesses += 1
        address = to_unsigned32(latch.mem_address - 4)
        if signals.mem_write:
            latch.mem_read_data = 0
            if latch.opcode == 0x28:
                self.cache.write(address, latch.mem_write_data & 0xFF)
            elif latch.opcode == 0x29:
                self.cache.write(address, latch.mem_write_data & 0xFFFF)
            elif latch.opcode in (0x2B, 0x38):
                self.cache.write(address, latch.mem_write_data)
        else:
            value = self.cache.read(address)
            if latch.opcode == 0x24:
                value &= 0xFF
            elif latch.opcode == 0x25:
                value &= 0xFFFF
            latch.mem_read_data = value
            self._push_forward(latch.write_register, latch.mem_read_data)

    def _write_back(self, latch: Latch) -> None:
        signals = latch.signals
        latch.write_data = latch.mem_read_data if signals.mem_to_reg else latch.alu_result
        if not signals.reg_write:
            return
        if latch.opcode == 0x3:
            self.registers[31] = to_signed32(latch.pc + 8)
        elif latch.opcode == 0 and latch.funct == 0x9:
            self.registers[latch.write_register] = to_signed32(latch.pc + 4)
        else:
            self.registers[latch.write_register] = to_signed32(latch.write_data)

    def report(self) -> str:
        """Return the end-of-run summary."""
        s = self.stats
        cache = self.cache
        rate = cache.hits / s.memory_accesses * 100 if s.memory_accesses else 0.0
        lines = [
            "--------------------end--------------------",
            f"executed cycle number: {s.cycles}",
            f"executed R_type number: {s.r_type}",
            f"executed I_type number: {s.i_type}",
            f"executed J_type number: {s.j_type}",
            f"Memory Access number: {s.memory_accesses}",
            f"branch number: {s.branches}",
            f"branch satisfied: {s.branches_satisfied}",
            f"branch predict success: {s.predict_success}",
            f"branch predict fail: {s.predict_fail}",
            f"cache num: {cache.hits + cache.misses}",
            f"cache hit num: {cache.hits}",
            f"cache miss num: {cache.misses}",
            f"cache hit rate: {rate:.6f}",
            f"result = {self.registers[2]}",
        ]
        return "\n".join(lines) + "\n"
import pytest

from mipscache.memory import Memory
from mipscache.pipeline import ControlSignals, Latch, PipelineCPU, alu, alu_control

JR_RA = (31 << 21) | 0x08


def addi(rt, rs, imm):
    return (0x08 << 26) | (rs << 21) | (rt << 16) | (imm & 0xFFFF)


def bne(rs, rt, offset):
    return (0x05 << 26) | (rs << 21) | (rt << 16) | (offset & 0xFFFF)


def run(words, limit=1000):
    memory = Memory(0x1000)
    memory.load(words)
    cpu = PipelineCPU(memory)
    for _ in range(limit):
        if cpu.halted:
            break
        cpu.step()
    assert cpu.halted
    return cpu


def test_alu_operations():
    assert alu(1, 2, 3) == 5
    assert alu(7, 2, 3) == -1
    assert alu(10, 0, 0) == -1
    assert alu(11, 0, 1) == 0x10000
    assert alu(12, 9, 4) == 9
    assert alu(4, -1, 0) == 1
    assert alu(0, 9, 4) == 0


def test_alu_wraps_to_32_bits():
    assert alu(1, 0x7FFFFFFF, 1) == -0x80000000


def test_control_signals_for_load_and_store():
    load = ControlSignals.for_instruction(0x23, 0)
    assert load.mem_read and load.mem_to_reg and load.reg_write and load.alu_src
    store = ControlSignals.for_instruction(0x2B, 0)
    assert store.mem_write and not store.reg_write


def test_control_signals_for_jr():
    signals = ControlSignals.for_instruction(0, 0x08)
    assert signals.jump and signals.reg_dst and not signals.reg_write


def test_alu_control():
    assert alu_control(ControlSignals.for_instruction(0, 0x20), 0, 0x20) == 1
    assert alu_control(ControlSignals.for_instruction(0x4, 0), 0x4, 0) == 8
    assert alu_control(ControlSignals.for_instruction(0x3F, 0), 0x3F, 0) == 0


def test_latch_defaults_are_empty():
    latch = Latch()
    assert latch.signals == ControlSignals()
    assert latch.alu_result == 0


def test_simple_program_halts_with_result():
    cpu = run([addi(2, 0, 5), JR_RA])
    assert cpu.registers[2] == 5
    assert "result = 5" in cpu.report()


def test_forwarding_between_dependent_instructions():
    cpu = run([addi(2, 0, 5), addi(2, 2, 3), JR_RA])
    assert cpu.registers[2] == 8


def test_branch_loop_counts_down():
    program = [addi(8, 0, 3), addi(8, 8, -1), bne(8, 0, -2), JR_RA]
    cpu = run(program)
    assert cpu.registers[8] == 0
    assert cpu.stats.branches_satisfied == 2
    assert cpu.stats.predict_success + cpu.stats.predict_fail == 3


def test_step_after_halt_raises():
    cpu = run([JR_RA])
    with pytest.raises(RuntimeError):
        cpu.step()
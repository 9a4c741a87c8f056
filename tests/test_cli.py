import pytest

from mipscache.cli import build_cache, main
from mipscache.memory import Memory

JR_RA = (31 << 21) | 0x08
ADDI_V0_5 = (0x08 << 26) | (2 << 16) | 5


def write_program(path, words):
    path.write_bytes(b"".join(w.to_bytes(4, "big") for w in words))
    return str(path)


def test_build_cache_kinds():
    memory = Memory(0x1000)
    assert build_cache("none", memory) is None
    assert len(build_cache("fully", memory).lines) == 64
    assert len(build_cache("direct", memory).lines) == 128
    assert build_cache("2way", memory).ways == 2


def test_build_cache_unknown():
    with pytest.raises(ValueError):
        build_cache("bogus", Memory(16))


def test_single_mode(tmp_path, capsys):
    path = write_program(tmp_path / "prog.bin", [ADDI_V0_5, JR_RA])
    assert main([path, "--cache", "direct"]) == 0
    out = capsys.readouterr().out
    assert "Final return value Regs[2]: 0x5" in out
    assert "cache hit / miss num" in out


def test_pipeline_mode(tmp_path, capsys):
    path = write_program(tmp_path / "prog.bin", [ADDI_V0_5, JR_RA])
    assert main([path, "--mode", "pipeline"]) == 0
    assert "result = 5" in capsys.readouterr().out


def test_missing_file(tmp_path, capsys):
    assert main([str(tmp_path / "absent.bin")]) == 1
    assert "ERROR opening file" in capsys.readouterr().err
import pytest

from mipscache.memory import Memory
from mipscache.set_associative import SetAssociativeCache

SET_STRIDE = 32 * 64  # bytes between blocks that share a set with the defaults


@pytest.fixture
def memory():
    mem = Memory(4096)
    mem.load(range(1, 4097))
    return mem


def test_read_returns_memory_word(memory):
    cache = SetAssociativeCache(memory)
    assert cache.read(8) == memory.read_word(8)
    assert cache.misses == 1
    assert cache.read(12) == memory.read_word(12)
    assert cache.hits == 1


def test_two_ways_hold_conflicting_blocks(memory):
    cache = SetAssociativeCache(memory)
    a, b = 0, SET_STRIDE
    cache.read(a)
    cache.read(b)
    assert cache.read(a) == memory.read_word(a)
    assert cache.read(b) == memory.read_word(b)
    assert (cache.hits, cache.misses) == (2, 2)


def test_second_chance_keeps_referenced_line(memory):
    cache = SetAssociativeCache(memory)
    a, b, c = 0, SET_STRIDE, 2 * SET_STRIDE
    cache.read(a)
    cache.read(b)
    cache.read(a)  # marks a as referenced
    cache.read(c)  # evicts b
    misses = cache.misses
    assert cache.read(a) == memory.read_word(a)
    assert cache.misses == misses
    assert cache.read(b) == memory.read_word(b)
    assert cache.misses == misses + 1


def test_dirty_line_written_back_on_eviction(memory):
    cache = SetAssociativeCache(memory)
    a, b, c = 4, SET_STRIDE, 2 * SET_STRIDE
    original = memory.read_word(a)
    cache.write(a, original + 100)
    assert memory.read_word(a) == original
    cache.read(b)
    cache.read(c)
    assert memory.read_word(a) == original + 100


def test_write_then_read_hits(memory):
    cache = SetAssociativeCache(memory)
    cache.write(64, -5)
    assert cache.read(64) == -5
    assert cache.hits == 1


def test_cycles_and_hit_rate(memory):
    cache = SetAssociativeCache(memory, hit_cost=1, miss_cost=1000)
    cache.read(0)
    cache.read(4)
    assert cache.cycles == 1001
    assert cache.hit_rate() == pytest.approx(50.0)


def test_other_geometry(memory):
    cache = SetAssociativeCache(memory, sets=4, ways=4)
    assert len(cache.lines) == 16
    addresses = [n * 4 * 64 for n in range(4)]
    for address in addresses:
        cache.read(address)
    for address in addresses:
        assert cache.read(address) == memory.read_word(address)
    assert cache.misses == 4


@pytest.mark.parametrize("sets, ways", [(0, 2), (32, 0), (-1, 2)])
def test_invalid_geometry(memory, sets, ways):
    with pytest.raises(ValueError):
        SetAssociativeCache(memory, sets=sets, ways=ways)


def test_negative_address(memory):
    cache = SetAssociativeCache(memory)
    with pytest.raises(IndexError):
        cache.read(-4)
# mipscache

A small MIPS processor simulator for studying how the way a cache is organised
affects performance. It loads a big-endian MIPS program image and runs it on
one of two cores:

- a **single-cycle** core, `mipscache.single_cycle.SingleCycleCPU`. It runs one
  instruction per step and can work with no cache, or with any of the caches
  below in front of memory.
- a **five-stage pipelined** core, `mipscache.pipeline.PipelineCPU`. It has
  register forwarding, a two-bit branch predictor
  (`mipscache.predictor.BranchPredictor`, 10 entries) and a table of jump
  targets (`mipscache.predictor.JumpTable`, 5 entries). By default it runs over
  a 2-way set-associative cache.

Both cores start with `$ra` set to `0xffffffff`. They stop when the program
returns to that address. The result of the program is the value left in
register 2 (`$v0`).

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Command line

```
mipscache [PROGRAM] [--mode {single,pipeline}] [--cache {none,direct,fully,2way}] [--trace]
```

- `PROGRAM` is the program image to run. If you leave it out, the command uses
  `fib.bin`.
- `--mode` chooses the core. The default is `single`.
- `--cache` chooses the cache. The single-cycle core runs with no cache unless
  you give one. The pipelined core uses `2way` by default and does not accept
  `none`.
- `--trace` prints one line for each instruction the single-cycle core executes.

When the program stops, the command prints a summary of the run. If the
program image cannot be opened, the command prints an error and exits with
status 1.

## Library use

```python
from mipscache.memory import Memory, load_program
from mipscache.cache import DirectMappedCache
from mipscache.single_cycle import SingleCycleCPU

memory = Memory(0x400000)
memory.load(load_program("fib.bin"))
cache = DirectMappedCache(memory, 64, 1, 1000)
cpu = SingleCycleCPU(memory, cache, None)   # pass a text stream instead of None to trace
stats = cpu.run()
print(cpu.report())
```

`mipscache.cli.build_cache(kind, memory)` builds a cache of the named kind
(`"none"`, `"direct"`, `"fully"` or `"2way"`) over a `Memory`. For `"none"` it
returns `None`. For any other name it raises `ValueError`.

The pipelined core is used in the same way:

```python
from mipscache.pipeline import PipelineCPU

cpu = PipelineCPU(memory)        # creates a SetAssociativeCache over memory
cpu.run()
print(cpu.report())
```

Calling `step()` on either core after it has stopped raises `RuntimeError`.

## Memory and caches

- `mipscache.memory.Memory` holds signed 32-bit words. It is addressed by byte
  address, and an address is divided by four to find the word. By default it
  holds `0x400000` words. A negative address, or one past the end, raises
  `IndexError`.
- `decode_program(data)` splits bytes into big-endian words and ignores any
  incomplete final word. `load_program(path)` reads a file and decodes it in the
  same way.
- Every cache (`DirectMappedCache`, `FullyAssociativeCache` and
  `mipscache.set_associative.SetAssociativeCache`) uses 64-byte lines of 16
  words. The caches are write-back and write-allocate: a dirty line goes to
  memory only when it is evicted. Fully associative and set-associative caches
  choose the line to evict with a second-chance (clock) policy.
- The default sizes are 128 lines for direct-mapped, 64 lines for fully
  associative, and 32 sets × 2 ways for set-associative. A hit costs 1 cycle and
  a miss costs 1000 cycles. Each cache counts `hits`, `misses` and `cycles`.
  `hit_rate()` returns the percentage of accesses that hit.

## Cycle counting

The single-cycle core counts 5 cycles for each instruction. When a cache is in
use, it adds the cycles the cache spent on each access. The pipelined core
counts one cycle per clock and does not include cache costs in its count. It
reports its hit rate as cache hits divided by the number of memory accesses it
made.

## What it does not do

- There is no assembler. Programs must already be assembled into raw
  big-endian binary images.
- Only a subset of the MIPS instruction set is decoded. In the single-cycle
  core, any instruction it does not recognise is counted and skipped as a no-op.
- There are no exceptions, interrupts, system calls or floating-point unit.
- The pipelined core does not trace the instructions it executes.
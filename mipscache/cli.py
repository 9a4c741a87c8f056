"""Command line entry point: run a program image on a chosen machine model."""

from __future__ import annotations

import argparse
import sys

from .cache import Cache, DirectMappedCache, FullyAssociativeCache
from .memory import Memory, load_program
from .pipeline import PipelineCPU
from .set_associative import SetAssociativeCache
from .single_cycle import SingleCycleCPU

CACHE_KINDS = ("none", "direct", "fully", "2way")


def build_cache(kind: str, memory: Memory) -> Cache | None:
    """Create the cache named by ``kind`` in front of ``memory``."""
    if kind == "none":
        return None
    if kind == "direct":
        return DirectMappedCache(memory)
    if kind == "fully":
        return FullyAssociativeCache(memory)
    if kind == "2way":
        return SetAssociativeCache(memory)
    raise ValueError(f"unknown cache kind {kind!r}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="mipscache", description="Run a MIPS program image.")
    parser.add_argument("program", nargs="?", default="fib.bin", help="big-endian program image")
    parser.add_argument("--mode", choices=("single", "pipeline"), default="single")
    parser.add_argument("--cache", choices=CACHE_KINDS, default=None)
    parser.add_argument("--trace", action="store_true", help="print each executed instruction")
    args = parser.parse_args(argv)

    try:
        words = load_program(args.program)
    except OSError as exc:
        print(f"ERROR opening file: {exc}", file=sys.stderr)
        return 1

    memory = Memory()
    memory.load(words)

    if args.mode == "pipeline":
        kind = args.cache or "2way"
        if kind == "none":
            parser.error("the pipeline model needs a cache")
        cpu = PipelineCPU(memory, build_cache(kind, memory))
        cpu.run()
        sys.stdout.write(cpu.report())
        return 0

    single = SingleCycleCPU(memory, build_cache(args.cache or "none", memory),
                            sys.stdout if args.trace else None)
    single.run()
    sys.stdout.write("\n\n" + single.report())
    return 0


if __name__ == "__main__":
    sys.exit(main())
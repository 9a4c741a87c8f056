"""MIPS simulator: single-cycle and pipelined cores over configurable write-back caches."""

__version__ = "0.1.0"
__all__ = ["__version__"]
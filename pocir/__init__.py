"""Lowering of a small statically typed language's syntax tree into an SSA-style IR."""

__version__ = "0.1.0"

__all__ = ["builder", "expressions", "ir", "lowering", "statements", "syntax"]
"""Imp — a small imperative language with a soundness harness"""

__version__ = "0.1.0"

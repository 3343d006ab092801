"""
SMT solver integration module.

This module runs Z3 as an external process to produce trace logs.
"""

from .z3_tracer import TraceRun, Z3Tracer

__all__ = ["TraceRun", "Z3Tracer"]

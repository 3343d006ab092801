"""Z3 trace log parsing and instantiation graph analysis."""

from .graph import InstantiationGraph, summarize
from .parser import Z3TraceParser

__all__ = ["InstantiationGraph", "Z3TraceParser", "summarize"]

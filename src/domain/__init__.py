"""
Domain layer module.

This module contains the core logic of the trace corpus: naming of problems,
logs and cache keys, and the Z3 trace log parser. It is independent of
infrastructure concerns and depends only on protocols (interfaces).

Key components:
- models.py: Domain models (Pydantic-based data structures)
- naming.py: Problem hashing, log file names and cache keys
- protocols.py: Protocol definitions for the solver and the cache store
- trace/: Trace log parser and instantiation graph
"""

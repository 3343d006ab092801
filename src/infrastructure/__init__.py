"""
Infrastructure layer module.

This module contains concrete implementations of the domain protocols:
the Z3 solver process and the on-disk store of log archives.

Key components:
- smt/: Z3 tracer (runs the solver with tracing enabled)
- cache/: Keyed store of logs-directory archives
- archive.py: Gzip tarball helpers
"""

"""Command-line interface of the trace corpus tooling."""

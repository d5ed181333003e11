"""
MarkerRunner - pytest runner speaking a line-oriented marker protocol.

This package provides tools to:
- Expand import-path entries (including archive wildcards) for a test run
- Drive pytest in-process and translate its lifecycle into protocol markers
- Derive a process exit status from the aggregated results
"""

__version__ = "0.1.0"
__author__ = "MarkerRunner Team"

"""
Backend cluster engines.

An engine owns the current point snapshot and answers viewport queries against it.
Today we keep everything in process memory.
"""

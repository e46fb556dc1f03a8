"""
Utility functions for two-steps benchmarking.

This package contains input validation, the error taxonomy and the
configuration used by the command line.
"""

"""
Core result types for blob operations.

This module is framework-agnostic - it doesn't import the Azure SDK,
so callers can depend on it without pulling in infrastructure concerns.
"""

from .models import DeleteResult, ErrorKind, ErrorStrategy, OperationResult

__all__ = [
    "DeleteResult",
    "ErrorKind",
    "ErrorStrategy",
    "OperationResult",
]

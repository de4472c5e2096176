"""
Utility helpers for the systile model.

This module contains:
- fixed_point: Two's complement register helpers
- gemm: End-to-end GEMM runner and numpy reference
"""

from .fixed_point import check_signed, signed_range, to_signed

__all__ = ["check_signed", "signed_range", "to_signed"]

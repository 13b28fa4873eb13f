"""Utility functions for celltype-propeller.

Provides statistical helpers shared across modules.
"""

from .stats import (
    CORRECTION_METHODS,
    adjust_pvalues,
    trigamma_inverse,
)

__all__ = [
    "CORRECTION_METHODS",
    "adjust_pvalues",
    "trigamma_inverse",
]

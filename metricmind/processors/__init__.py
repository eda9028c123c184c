"""Post-load processors: categorization, category validation and weighting."""

from .categorizer import CommitCategorizer, extract_category
from .validator import is_valid, rejection_reason, validate_or_raise
from .weights import WeightCalculator, extract_identifiers, is_revert, is_unrevert

__all__ = [
    "CommitCategorizer",
    "WeightCalculator",
    "extract_category",
    "extract_identifiers",
    "is_revert",
    "is_unrevert",
    "is_valid",
    "rejection_reason",
    "validate_or_raise",
]

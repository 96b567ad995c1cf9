"""Change detection modules."""

from rent_scout.detection.change_detector import changes_summary, compare, generate_hash
from rent_scout.detection.normalizer import normalize_set, normalize_value, titles_equivalent

__all__ = [
    "changes_summary",
    "compare",
    "generate_hash",
    "normalize_set",
    "normalize_value",
    "titles_equivalent",
]

"""Value normalization for change detection."""

import re
from collections.abc import Iterable
from typing import Any

# Pre-compiled regex patterns for performance
_WHITESPACE_RE = re.compile(r"\s+")
_ZERO_WIDTH_RE = re.compile(r"[\u200b-\u200d\ufeff]")
_QUOTES_RE = re.compile(r"""[\u201c\u201d\u2018\u2019'"]""")
_DASHES_RE = re.compile(r"[\u2014\u2013-]")


def normalize_value(value: Any) -> str:
    """Normalize a scalar for comparison.

    Algorithm:
    1. None and empty string become ""
    2. Strip leading/trailing whitespace
    3. Collapse internal whitespace to single spaces
    4. Remove zero-width characters
    5. Unify quote and dash variants
    6. Lowercase

    Args:
        value: Any scalar value.

    Returns:
        Normalized string.

    Examples:
        >>> normalize_value(None)
        ''
        >>> normalize_value("  Sunny   Studio ")
        'sunny studio'
        >>> normalize_value("近捷運—信義線")
        '近捷運-信義線'
    """
    if value is None or value == "":
        return ""

    result = str(value).strip()
    result = _WHITESPACE_RE.sub(" ", result)
    result = _ZERO_WIDTH_RE.sub("", result)
    result = _QUOTES_RE.sub('"', result)
    result = _DASHES_RE.sub("-", result)
    return result.lower()


def normalize_set(values: Iterable[Any] | str | None) -> frozenset[str]:
    """Normalize a list (or comma-joined string) into a set of non-empty values."""
    if values is None:
        return frozenset()
    if isinstance(values, str):
        values = values.split(",")
    return frozenset(v for v in (normalize_value(item) for item in values) if v)


def titles_equivalent(first: str, second: str) -> bool:
    """Check whether two normalized titles describe the same listing text.

    Titles are equivalent when they are equal, when one is a prefix of the
    other (truncated card titles), or when one only appends
    whitespace-separated tokens to the other.
    """
    if first == second:
        return True
    if not first or not second:
        return False

    shorter, longer = (first, second) if len(first) <= len(second) else (second, first)
    if longer.startswith(shorter):
        return True

    short_tokens = shorter.split(" ")
    long_tokens = longer.split(" ")
    return long_tokens[: len(short_tokens)] == short_tokens

from __future__ import annotations


def normalize_string(value: object | None) -> str:
    """Strip surrounding whitespace and lowercase a value for comparisons.

    >>> normalize_string("  Hikaru ")
    'hikaru'
    >>> normalize_string(None)
    ''
    """
    if value is None:
        return ""
    return str(value).strip().lower()

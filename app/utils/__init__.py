"""Shared utility helpers used across services."""


def split_list(value) -> list[str]:
    """Accept "a, b,c" or ["a", "b"] and return stripped non-empty items."""
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(v).strip() for v in value if str(v).strip()]

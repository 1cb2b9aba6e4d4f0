"""Helpers for unordered user pairs."""

from typing import Tuple


def normalize_pair(user_id_1: str, user_id_2: str) -> Tuple[str, str]:
    """Return the pair ordered so that the first id sorts lower."""
    if user_id_1 < user_id_2:
        return user_id_1, user_id_2
    return user_id_2, user_id_1

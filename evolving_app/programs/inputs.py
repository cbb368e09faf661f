"""Selection of user inputs for a generation pass."""

from __future__ import annotations

from typing import Dict, Iterable, List

from .types import ProgramInput


def latest_per_profile(inputs: Iterable[ProgramInput]) -> List[ProgramInput]:
    """Keep only the most recent input of each profile.

    Inputs are ordered by ``created_at`` (stable, so store order breaks
    ties) and a later input replaces an earlier one from the same profile.
    The result is ordered oldest first.
    """
    latest: Dict[str, ProgramInput] = {}
    for item in sorted(inputs, key=lambda i: i.created_at):
        latest.pop(item.profile_id, None)
        latest[item.profile_id] = item
    return list(latest.values())


def truncate_input(text: str, budget: int) -> str:
    """Cut an input down to ``budget`` characters."""
    text = text.strip()
    if budget <= 0:
        return ""
    return text[:budget]

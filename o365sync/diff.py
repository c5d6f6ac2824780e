from typing import Iterable

from .models import DiffResult


def diff_members(desired: Iterable[str], current: Iterable[str]) -> DiffResult:
    """Compare desired and current membership as sets.

    to_add follows the order of `desired`, to_remove the order of `current`;
    duplicates collapse.
    """
    desired_list = list(dict.fromkeys(desired))
    current_list = list(dict.fromkeys(current))
    desired_set = set(desired_list)
    current_set = set(current_list)

    return DiffResult(
        to_add=tuple(m for m in desired_list if m not in current_set),
        to_remove=tuple(m for m in current_list if m not in desired_set),
    )

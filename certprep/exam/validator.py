"""
Answer selection rules.

- validate_selection: is a candidate set an acceptable final answer?
- toggle_option: how a click on an option changes the working selection
  (radio for single choice, capped checkbox for multi-select).

Both are pure; the UI and the auto-save engine call them before writing.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum


class SelectionResult(str, Enum):
    """Outcome of validating a selection against a question."""

    VALID = "valid"
    TOO_FEW = "too_few"
    TOO_MANY = "too_many"
    DUPLICATE_OPTION = "duplicate_option"
    UNKNOWN_OPTION = "unknown_option"


@dataclass(frozen=True)
class ToggleResult:
    """Selection after a toggle, and whether the toggle was applied."""

    selection: tuple[str, ...]
    accepted: bool


def validate_selection(
    required_selections: int,
    selected_ids: Sequence[str],
    valid_option_ids: Iterable[str],
) -> SelectionResult:
    """
    Check a final selection against a question's selection contract.

    Args:
        required_selections: Exact number of options the question expects
        selected_ids: Candidate option IDs, in submission order
        valid_option_ids: The question's own option IDs

    Returns:
        SelectionResult.VALID, or the first rule that failed in the order
        duplicate, unknown, too many, too few.
    """
    if required_selections < 1:
        raise ValueError(f"required_selections must be >= 1, got {required_selections}")

    if len(set(selected_ids)) != len(selected_ids):
        return SelectionResult.DUPLICATE_OPTION

    allowed = set(valid_option_ids)
    if any(option_id not in allowed for option_id in selected_ids):
        return SelectionResult.UNKNOWN_OPTION

    if len(selected_ids) > required_selections:
        return SelectionResult.TOO_MANY
    if len(selected_ids) < required_selections:
        return SelectionResult.TOO_FEW
    return SelectionResult.VALID


def toggle_option(
    required_selections: int,
    current: Sequence[str],
    option_id: str,
) -> ToggleResult:
    """
    Apply a click on option_id to the working selection.

    Single choice: picking an option replaces the previous pick; picking
    the selected option again keeps it. Multi-select: a selected option is
    removed, an unselected one is added unless the cap is already reached.
    """
    selection = tuple(current)

    if required_selections == 1:
        return ToggleResult(selection=(option_id,), accepted=True)

    if option_id in selection:
        return ToggleResult(
            selection=tuple(o for o in selection if o != option_id),
            accepted=True,
        )

    if len(selection) >= required_selections:
        return ToggleResult(selection=selection, accepted=False)

    return ToggleResult(selection=selection + (option_id,), accepted=True)


def is_final(required_selections: int, selected_ids: Sequence[str], valid_option_ids: Iterable[str]) -> bool:
    """True when the selection can be saved as the question's answer."""
    return validate_selection(required_selections, selected_ids, valid_option_ids) == SelectionResult.VALID

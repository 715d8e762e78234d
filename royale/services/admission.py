"""
Upload admission control.

Decides whether a screenshot batch may be processed at all. The cap is the
tournament's total_matches across the whole tournament (not per day), counted
over the team's per-match records. The whole batch is admitted or rejected;
there is no partial admission. Nothing here writes.
"""
from __future__ import annotations

from typing import Sequence

from royale.config import MAX_BATCH_SIZE
from royale.errors import QuotaExceededError, ValidationError


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" if n == 1 else f"{n} {word}s"


def remaining_slots(existing: int, total_matches: int) -> int:
    return max(total_matches - existing, 0)


def check_admission(
    existing: int,
    total_matches: int,
    content_types: Sequence[str | None],
    max_batch_size: int = MAX_BATCH_SIZE,
) -> None:
    """
    Raise if the batch must be rejected; return None if it is admitted.

    Checks run in this order: cap already reached, batch would overflow the cap,
    batch too large, non-image file.
    """
    batch_size = len(content_types)
    if batch_size == 0:
        raise ValidationError("Empty upload batch", user_message="Select at least one screenshot")
    if existing >= total_matches:
        raise QuotaExceededError(
            f"You have reached the maximum number of matches ({total_matches}) for this tournament",
            remaining=0,
        )
    if existing + batch_size > total_matches:
        remaining = remaining_slots(existing, total_matches)
        raise QuotaExceededError(
            f"You can only upload {_plural(remaining, 'more screenshot')} for this tournament",
            remaining=remaining,
        )
    if batch_size > max_batch_size:
        raise ValidationError(f"You can only upload up to {max_batch_size} screenshots at once")
    if any(not (ct or "").lower().startswith("image/") for ct in content_types):
        raise ValidationError("Please upload only image files")

from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Decimal
from typing import Sequence

from budgetroom.utils.money import CENT, as_decimal


SPLIT_TOLERANCE = Decimal("0.01")


class SplitValidationError(ValueError):
    pass


def split_equally(amount: Decimal, member_ids: Sequence[int]) -> dict[int, Decimal]:
    """Split ``amount`` into cent shares that add up to it exactly."""
    if amount < 0:
        raise ValueError("amount must be non-negative")
    if not member_ids:
        raise ValueError("member_ids must not be empty")

    total_cents = int((amount / CENT).quantize(Decimal("1"), rounding=ROUND_HALF_EVEN))
    n = len(member_ids)
    base, remainder = divmod(total_cents, n)

    shares = [base + (1 if idx < remainder else 0) for idx in range(n)]
    return {member_id: Decimal(share) * CENT for member_id, share in zip(member_ids, shares)}


def validate_custom_splits(
    amount: Decimal,
    splits: Sequence[tuple[int, Decimal]],
    member_ids: Sequence[int] | None = None,
) -> dict[int, Decimal]:
    if not splits:
        raise SplitValidationError("Custom split needs at least one share.")

    result: dict[int, Decimal] = {}
    for user_id, raw_amount in splits:
        share = as_decimal(raw_amount)
        if share < 0:
            raise SplitValidationError("Shares must not be negative.")
        if user_id in result:
            raise SplitValidationError("Each member can appear in a split only once.")
        if member_ids is not None and user_id not in member_ids:
            raise SplitValidationError(f"User #{user_id} is not a member of this room.")
        result[user_id] = share

    total = sum(result.values(), Decimal("0"))
    if abs(total - amount) > SPLIT_TOLERANCE:
        raise SplitValidationError(f"Custom splits must sum to {amount:.2f}.")
    return result

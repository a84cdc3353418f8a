from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Mapping, Sequence

from budgetroom.db.models import ExpenseSplit, RoomMember, Settlement, SharedExpense
from budgetroom.services.ledger import ZERO, index_splits, resolve_share, share_amount
from budgetroom.utils.money import CENT


@dataclass(slots=True, frozen=True)
class Transfer:
    from_user: int
    to_user: int
    amount: Decimal


def compute_net_balances(
    expenses: Sequence[SharedExpense],
    members: Sequence[RoomMember],
    splits: Sequence[ExpenseSplit],
    settlements: Sequence[Settlement],
) -> dict[int, Decimal]:
    """Positive balance means the room owes the member money."""
    member_ids = [member.user_id for member in members]
    split_index = index_splits(splits)
    balances: dict[int, Decimal] = {member_id: ZERO for member_id in member_ids}

    for expense in expenses:
        balances[expense.paid_by] = balances.get(expense.paid_by, ZERO) + expense.amount
        expense_splits = split_index.get(expense.id, {})
        consumers = member_ids
        if expense.split_type == "custom":
            consumers = list(dict.fromkeys([*member_ids, *expense_splits]))
        for user_id in consumers:
            share = share_amount(resolve_share(expense, user_id, len(member_ids), expense_splits))
            balances[user_id] = balances.get(user_id, ZERO) - share

    for settlement in settlements:
        balances[settlement.from_user_id] = balances.get(settlement.from_user_id, ZERO) + settlement.amount
        balances[settlement.to_user_id] = balances.get(settlement.to_user_id, ZERO) - settlement.amount

    return balances


def suggest_transfers(balances: Mapping[int, Decimal]) -> List[Transfer]:
    creditors: list[tuple[int, Decimal]] = []
    debtors: list[tuple[int, Decimal]] = []

    for user_id, balance in sorted(balances.items()):
        rounded = balance.quantize(CENT)
        if rounded > 0:
            creditors.append((user_id, rounded))
        elif rounded < 0:
            debtors.append((user_id, -rounded))

    creditors.sort(key=lambda x: x[1], reverse=True)
    debtors.sort(key=lambda x: x[1], reverse=True)

    transfers: list[Transfer] = []
    i, j = 0, 0

    while i < len(creditors) and j < len(debtors):
        cred_id, cred_amount = creditors[i]
        debt_id, debt_amount = debtors[j]

        transfer_amount = min(cred_amount, debt_amount)
        transfers.append(Transfer(from_user=debt_id, to_user=cred_id, amount=transfer_amount))

        cred_amount -= transfer_amount
        debt_amount -= transfer_amount

        if cred_amount < CENT:
            i += 1
        else:
            creditors[i] = (cred_id, cred_amount)

        if debt_amount < CENT:
            j += 1
        else:
            debtors[j] = (debt_id, debt_amount)

    return transfers

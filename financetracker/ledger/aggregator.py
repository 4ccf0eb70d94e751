"""
Budget Progress Aggregation

DESIGN DECISION: Progress is DERIVED, never stored.
Each call reads the identity's budgets for one month and sums that
identity's expenses for each budgeted category inside the month window.

GUARANTEES:
- Only rows of the given identity are read (every store call is keyed by it)
- A budgeted category with no expenses still appears, with spent = 0
- Overspending gives a negative ``remaining``; that is a result, not an error
- Storage errors propagate untouched; nothing is cached or retried
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from financetracker.clock import Clock, current_month, utc_now
from financetracker.models.auth import Identity
from financetracker.models.ledger import BudgetProgress, first_of_month
from financetracker.services.storage import (
    BudgetStorageInterface,
    TransactionStorageInterface,
)


def month_window(month: date) -> tuple[date, date]:
    """
    Half-open window ``[month_start, next_month_start)`` containing ``month``.

    December rolls over into January of the following year.
    """
    start = first_of_month(month)
    if start.month == 12:
        end = date(start.year + 1, 1, 1)
    else:
        end = date(start.year, start.month + 1, 1)
    return start, end


class LedgerAggregator:
    """Computes BudgetProgress for one (identity, month)."""

    def __init__(
        self,
        budget_storage: BudgetStorageInterface,
        transaction_storage: TransactionStorageInterface,
        clock: Clock = utc_now,
    ):
        self._budgets = budget_storage
        self._transactions = transaction_storage
        self._clock = clock

    def resolve_month(self, month: Optional[date] = None) -> date:
        """The requested month's first day, or the current UTC month."""
        if month is None:
            return current_month(self._clock)
        return first_of_month(month)

    async def compute(
        self,
        identity: Identity,
        month: Optional[date] = None,
    ) -> list[BudgetProgress]:
        """
        Budget versus spend for every category ``identity`` budgeted in ``month``.

        Returns:
            One entry per budgeted category, sorted by category
        """
        month_start, next_month_start = month_window(self.resolve_month(month))

        budgets = await self._budgets.list_budgets(identity, month_start)

        progress = []
        for budget in sorted(budgets, key=lambda b: b.category):
            spent = await self._transactions.sum_expenses(
                identity,
                budget.category,
                month_start,
                next_month_start,
            )
            spent = spent or Decimal("0")
            progress.append(
                BudgetProgress(
                    category=budget.category,
                    budget_amount=budget.amount,
                    spent=spent,
                    remaining=budget.amount - spent,
                )
            )

        return progress

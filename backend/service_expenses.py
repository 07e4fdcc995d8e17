"""
Aggregation layer: expense summaries.

Raw expense rows are pulled from PostgreSQL through `ExpenseRepo` and
folded in process memory. Totals are floats: good enough for reporting,
not for ledger-accurate sums.

Summaries read the relational store only. Activity and metric documents in
MongoDB are not kept consistent with expenses, so an expense deleted after a
metric was recorded can still be reflected in that metric.
"""

from collections import defaultdict
from typing import Dict, Iterable, Optional

from dates import end_of_day_exclusive, parse_day, start_of_day
from errors import ValidationFailure
from logger import setup_logger
from models import ExpenseRecord, ExpenseSummary
from repo_expenses import ExpenseRepo

logger = setup_logger(__name__)


def summarize(expenses: Iterable[ExpenseRecord]) -> tuple[float, Dict[str, float]]:
    """Return (total, per-category totals) for the given rows.

    Only categories that appear in `expenses` get a key.
    """

    total = 0.0
    by_category: Dict[str, float] = defaultdict(float)
    for e in expenses:
        amount = float(e.amount)
        total += amount
        by_category[e.category] += amount
    return total, dict(by_category)


class ExpenseSummaryService:
    """Validates summary inputs and folds the matching expenses.

    Example usage:
        svc = ExpenseSummaryService(ExpenseRepo())
        svc.get_expense_summary(1, "2024-01-01", "2024-01-31")
    """

    def __init__(self, repo: ExpenseRepo):
        self.repo = repo

    def get_expense_summary(
        self,
        user_id: Optional[int],
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> ExpenseSummary:
        """Summarize a user's expenses, optionally within a date window.

        The window is `[start_date 00:00, end_date + 1 day 00:00)`, so the
        end date counts in full.

        Raises:
        - `ValidationFailure` when `user_id` is missing or a date is malformed
        - `StoreUnavailable` when the relational query fails
        """

        if user_id is None:
            raise ValidationFailure("userId is required for expense summary")

        start_day = parse_day(start_date, "start date")
        end_day = parse_day(end_date, "end date")

        logger.debug(
            "Calculating expense summary. userId: %s, startDate: %s, endDate: %s",
            user_id, start_date, end_date,
        )
        expenses = self.repo.fetch_for_summary(
            user_id,
            start_of_day(start_day) if start_day else None,
            end_of_day_exclusive(end_day) if end_day else None,
        )

        total, by_category = summarize(expenses)
        return ExpenseSummary(
            total_amount=total,
            by_category=by_category,
            user_id=user_id,
            start_date=start_date,
            end_date=end_date,
        )

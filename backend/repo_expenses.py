"""
Repository: read-only SQL for the relational `expenses` table.

Expense CRUD is owned by another part of the system; the analytics side
only needs the rows that feed the expense summary. Rows are mapped to
`ExpenseRecord` so the aggregation code never touches cursors.
"""

from datetime import datetime
from typing import List, Optional

import psycopg

from db import get_conn
from errors import StoreUnavailable
from logger import setup_logger
from models import ExpenseRecord

logger = setup_logger(__name__)


class ExpenseRepo:
    """DB access only. No aggregation here."""

    def fetch_for_summary(
        self,
        user_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[ExpenseRecord]:
        """Expenses owned by `user_id` with `start <= expense_date < end`.

        Either bound may be omitted.
        """

        sql = "SELECT user_id, amount, category, expense_date FROM expenses WHERE user_id = %s"
        params: list = [user_id]
        if start is not None:
            sql += " AND expense_date >= %s"
            params.append(start)
        if end is not None:
            sql += " AND expense_date < %s"
            params.append(end)

        try:
            with get_conn() as conn:
                with conn.cursor() as cur:
                    cur.execute(sql, params)
                    return [
                        ExpenseRecord(
                            user_id=r[0], amount=r[1], category=r[2], expense_date=r[3]
                        )
                        for r in cur.fetchall()
                    ]
        except psycopg.Error as e:
            logger.exception(
                "Error fetching expenses for summary userId=%s start=%s end=%s",
                user_id, start, end,
            )
            raise StoreUnavailable(f"Failed to fetch expenses: {e}") from e

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

import mongomock
import pytest

from document_store import DocumentStore
from models import ExpenseRecord

TEST_URI = "mongodb://localhost:27017/organizer_test?authSource=admin"


def make_store() -> DocumentStore:
    return DocumentStore(TEST_URI, "organizer_test", client_factory=mongomock.MongoClient)


@pytest.fixture
def store():
    s = make_store().open()
    s.ensure_indexes()
    yield s
    s.close()


class FakeExpenseRepo:
    """In-memory stand-in for `ExpenseRepo` applying the same filters as its SQL."""

    def __init__(self, expenses: Optional[List[ExpenseRecord]] = None):
        self.expenses = list(expenses or [])
        self.calls = []

    def fetch_for_summary(self, user_id, start=None, end=None):
        self.calls.append((user_id, start, end))
        return [
            e for e in self.expenses
            if e.user_id == user_id
            and (start is None or e.expense_date >= start)
            and (end is None or e.expense_date < end)
        ]


def expense(user_id, amount, category, when):
    return ExpenseRecord(
        user_id=user_id, amount=Decimal(str(amount)), category=category, expense_date=when
    )


@pytest.fixture
def expense_repo():
    return FakeExpenseRepo([
        expense(1, "10.00", "food", datetime(2024, 1, 5, 12, 0)),
        expense(1, "5.00", "food", datetime(2024, 1, 20, 18, 30)),
        expense(1, "20.00", "rent", datetime(2024, 2, 1, 9, 0)),
        expense(2, "99.99", "travel", datetime(2024, 1, 10, 8, 0)),
    ])

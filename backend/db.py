"""
Relational database connection helper.

Only the expense summary reads from PostgreSQL; the User/Task/Expense CRUD
surface lives elsewhere. Right now we use `psycopg.connect(settings.db_url)`
which opens a new connection per call.

Usage:
    from db import get_conn
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT 1;")
"""

import psycopg
from settings import settings


def get_conn():
    """Return a new psycopg connection using `settings.db_url`.

    A short `connect_timeout` keeps HTTP requests from hanging when the
    database is unreachable.
    """

    return psycopg.connect(settings.db_url, connect_timeout=5)

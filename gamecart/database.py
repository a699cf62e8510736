import sqlite3
from contextlib import contextmanager

import db
from .errors import StoreUnavailable


@contextmanager
def connection():
    """
    Open a connection for one unit of work.

    Commits when the block finishes, rolls back if it raises, and always
    closes. SQLite failures surface as StoreUnavailable.
    """
    try:
        conn = db.get_connection()
    except sqlite3.Error as e:
        raise StoreUnavailable(f"Cannot open the database: {e}") from e

    try:
        yield conn
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        raise StoreUnavailable(f"Database operation failed: {e}") from e
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()

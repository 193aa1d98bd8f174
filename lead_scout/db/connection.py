"""PostgreSQL connection helpers.

Callers pass ScoutConfig.database_url; nothing here reads the environment.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import psycopg2
from psycopg2.extras import RealDictCursor

SCHEMA_PATH = Path(__file__).parent / "schema.sql"


@contextmanager
def get_connection(database_url: str) -> Generator:
    """Connection with dict rows. Commits on success, rolls back on error."""
    conn = psycopg2.connect(database_url, cursor_factory=RealDictCursor)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(database_url: str) -> None:
    """Apply schema.sql."""
    schema_sql = SCHEMA_PATH.read_text()

    with get_connection(database_url) as conn:
        with conn.cursor() as cur:
            cur.execute(schema_sql)

"""
Fixtures for SQLite end-to-end tests.
"""
import pytest
import sqlalchemy as sa
from sqlalchemy.pool import StaticPool


@pytest.fixture
def sa_conn():
    """SQLAlchemy connection over an in-memory SQLite database with a users table."""
    engine = sa.create_engine('sqlite://', poolclass=StaticPool)
    with engine.connect() as conn:
        conn.exec_driver_sql('CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, age INTEGER)')
        conn.exec_driver_sql("INSERT INTO users (id, name, age) VALUES (1, 'rabbit', 1), (2, 'cat', 2)")
        yield conn
    engine.dispose()


@pytest.fixture
def events_conn(sqlite_conn):
    """SQLite connection with an events table storing dates as text."""
    sqlite_conn.execute('CREATE TABLE events (id INTEGER PRIMARY KEY, title TEXT, happened TEXT, score TEXT)')
    sqlite_conn.execute("""
    INSERT INTO events (id, title, happened, score) VALUES
    (1, 'launch', '2024-03-01 12:30:00', '7'),
    (2, 'review', '2024-03-05', '9')
    """)
    sqlite_conn.commit()
    return sqlite_conn

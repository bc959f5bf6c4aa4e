"""
SQLAlchemy engine and session factory for leads, clinics and lead events.

SQLite (local dev, seed script) or Postgres (production), chosen by
DATABASE_URL. get_session() hands out a plain session; callers commit and
close it themselves.
"""
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from fivmatch.config import DATABASE_URL


class Base(DeclarativeBase):
    pass


def normalize_database_url(raw: str) -> str:
    """Rewrite the legacy postgres:// scheme SQLAlchemy 2.x no longer accepts."""
    if raw.startswith('postgres://'):
        return 'postgresql://' + raw[len('postgres://'):]
    return raw


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # leads.assigned_clinic_id and lead_events.lead_id rely on FK enforcement
    cursor = dbapi_connection.cursor()
    cursor.execute('PRAGMA foreign_keys=ON')
    cursor.close()


def build_engine(raw_url: str):
    url = normalize_database_url(raw_url)
    if url.startswith('sqlite'):
        eng = create_engine(url, connect_args={'check_same_thread': False})
        event.listen(eng, 'connect', _enable_sqlite_foreign_keys)
        return eng
    return create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=10)


engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine)


def get_session():
    """Return a new session bound to the configured engine."""
    return SessionLocal()

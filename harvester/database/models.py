"""
Database models for the directory harvester.

All persisted state lives in one key/value table; key prefixes keep the
session blob, directory pages, profiles and unsubscribe records apart.
"""

from sqlalchemy import Column, String, DateTime, LargeBinary, create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import func

Base = declarative_base()


class KVEntry(Base):
    """A single key/value pair."""
    __tablename__ = 'kv_entries'

    key = Column(String(512), primary_key=True)
    value = Column(LargeBinary, nullable=False)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<KVEntry(key='{self.key}', size={len(self.value or b'')})>"


def create_database_engine(database_url: str = "sqlite:///harvester.db"):
    """Create and return a database engine."""
    kwargs = {
        'echo': False,
        'pool_pre_ping': True,
    }
    if database_url.startswith("sqlite"):
        kwargs['connect_args'] = {"check_same_thread": False}
        if ':memory:' in database_url or database_url in ('sqlite://', 'sqlite:///'):
            # One shared connection, otherwise every thread sees its own empty database
            kwargs['poolclass'] = StaticPool
    return create_engine(database_url, **kwargs)


def create_tables(engine):
    """Create all tables in the database."""
    Base.metadata.create_all(engine)


def get_session_maker(engine):
    """Get a session maker for the database."""
    return sessionmaker(bind=engine)

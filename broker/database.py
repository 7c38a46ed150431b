"""
Engine and session factory behind SqlBackend. The broker's only table is kv_entries:
every session, upstream OAuth state, registered client and authorization code is one
encrypted row there, so a shared database gives all workers the same vault and the
same single-use guarantees.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from broker.config import DATABASE_URL
from broker.models import Base

# SQLite: in-memory needs StaticPool so all connections share the same DB (for tests)
# File-based SQLite needs check_same_thread=False for FastAPI's threadpool
if DATABASE_URL.startswith("sqlite:///:memory:"):
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    connect_args = {"check_same_thread": False} if "sqlite" in DATABASE_URL else {}
    engine = create_engine(DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    """Create the kv_entries table if missing."""
    Base.metadata.create_all(bind=engine)

from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool

from lockbox.core.db.tables.base import Base
from lockbox.core.db.tables.credential import Credential
from lockbox.core.db.tables.server_secret import ServerSecret


def create_db_engine(database_url: str) -> Engine:
    """Create an engine for the credential database."""
    url = make_url(database_url)

    if url.get_backend_name() != "sqlite":
        # Configure engine with connection pooling
        return create_engine(
            database_url,
            echo=False,
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True,
            pool_recycle=3600,
        )

    # SQLite connections are shared across the request threadpool
    connect_args = {"check_same_thread": False}
    if url.database in (None, "", ":memory:"):
        return create_engine(
            database_url,
            connect_args=connect_args,
            poolclass=StaticPool,
        )

    # Ensure the data directory exists
    Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)


def create_tables(engine: Engine) -> None:
    Base.metadata.create_all(
        engine,
        tables=[Credential.__table__, ServerSecret.__table__],
        checkfirst=True,
    )

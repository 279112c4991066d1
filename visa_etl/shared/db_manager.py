from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# Base class for models
Base = declarative_base()


class Database:
    """
    Explicit store handle: owns the engine and the session factory.

    The run orchestrator (CLI) opens it once, hands it to the components that
    need it, and closes it at the end of the run.
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self._engine: Engine = self._create_engine(database_url, echo)
        self._session_factory = sessionmaker(
            bind=self._engine, autocommit=False, autoflush=False, expire_on_commit=False
        )

    @staticmethod
    def _create_engine(database_url: str, echo: bool) -> Engine:
        if database_url.startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}}
            # In-memory databases only live as long as their single connection
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool
            return create_engine(database_url, echo=echo, **kwargs)
        # pool_recycle to prevent MySQL connection timeout
        return create_engine(database_url, echo=echo, pool_recycle=3600, pool_pre_ping=True)

    @property
    def engine(self) -> Engine:
        return self._engine

    def create_schema(self) -> None:
        """Create all tables (development and tests; production uses migrations)"""
        from visa_etl.ingest.infrastructure.database import models  # noqa: F401

        Base.metadata.create_all(bind=self._engine)

    def drop_schema(self) -> None:
        Base.metadata.drop_all(bind=self._engine)

    def new_session(self) -> Session:
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        Scoped write transaction: commit on success, rollback on any
        exception, close on every exit path.
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def close(self) -> None:
        self._engine.dispose()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

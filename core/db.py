from typing import Generator, Optional

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase, Session
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    pass


class Database:
    """Owns the engine and session factory for one application instance.

    Nothing is connected until ``init`` is called; ``shutdown`` disposes the
    engine so the same object can be torn down cleanly by the app lifespan.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.echo = echo
        self.engine: Optional[Engine] = None
        self._sessionmaker: Optional[sessionmaker] = None

    def init(self) -> None:
        if self.engine is not None:
            return
        if self.url.startswith("sqlite"):
            # In-memory databases must share one connection across threads
            self.engine = create_engine(
                self.url,
                echo=self.echo,
                future=True,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool if ":memory:" in self.url else None,
            )

            @event.listens_for(self.engine, "connect")
            def set_sqlite_pragma(dbapi_conn, connection_record):
                cursor = dbapi_conn.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()
        else:
            self.engine = create_engine(self.url, echo=self.echo, future=True)

        self._sessionmaker = sessionmaker(bind=self.engine, autocommit=False, autoflush=False, expire_on_commit=False)

    def create_all(self) -> None:
        # Ensure tables exist (for dev/test; in prod use migrations)
        import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def shutdown(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
        self.engine = None
        self._sessionmaker = None

    def new_session(self) -> Session:
        if self._sessionmaker is None:
            raise RuntimeError("Database is not initialised")
        return self._sessionmaker()


def get_db(request: Request) -> Generator[Session, None, None]:
    db = request.app.state.database.new_session()
    try:
        yield db
    finally:
        db.close()

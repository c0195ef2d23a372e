from sqlmodel import SQLModel, Session, create_engine

from allerguard.config import settings


def _make_engine(dsn: str):
    if dsn.startswith("sqlite"):
        return create_engine(dsn, connect_args={"check_same_thread": False})
    return create_engine(dsn, pool_pre_ping=True, pool_timeout=settings.db_pool_timeout_s)


engine = _make_engine(settings.postgres_dsn)


def create_db_and_tables() -> None:
    SQLModel.metadata.create_all(engine)


def get_session() -> Session:
    return Session(engine)

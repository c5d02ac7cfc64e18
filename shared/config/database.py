from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def build_engine(storage_url: str) -> Engine:
    """Engine for the local client store. SQLite unless told otherwise."""
    connect_args = {"check_same_thread": False} if storage_url.startswith("sqlite") else {}
    return create_engine(storage_url, connect_args=connect_args, future=True)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(engine, expire_on_commit=False)

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from Encryption.encryption_config import ENCRYPTION_SETTINGS

Base = declarative_base()


def is_memory_database(url):
    return url in ("sqlite://", "sqlite:///:memory:")


def create_store_engine(url=None):
    url = url or ENCRYPTION_SETTINGS["DATABASE_URL"]
    if is_memory_database(url):
        # One shared connection, otherwise every session sees an empty database.
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


def create_session_factory(engine):
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)

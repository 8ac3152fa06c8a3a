"""
SQLAlchemy models for state that must outlive the process.
"""
import os
from datetime import datetime

from sqlalchemy import Column, DateTime, String, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


class ReflectorMapping(Base):
    """
    Container name -> IFB device created for it.

    Read back on container stop, possibly by a later process, to find
    the device to remove.
    """
    __tablename__ = 'reflector_mappings'

    container_name = Column(String(255), primary_key=True)
    reflector = Column(String(15), nullable=False)  # IFNAMSIZ - 1
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<ReflectorMapping(container_name='{self.container_name}', reflector='{self.reflector}')>"


# Database initialization and session management

def init_db(database_url: str = "sqlite:///./tcshaper.db", echo: bool = False):
    """
    Initialize the database and create all tables.

    Args:
        database_url: SQLAlchemy database URL ("sqlite://" keeps it in memory)
        echo: If True, log all SQL statements (useful for debugging)

    Returns:
        SQLAlchemy engine instance
    """
    url = make_url(database_url)
    kwargs = {}
    if url.get_backend_name() == "sqlite":
        # The status API reads from its own thread
        kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        else:
            directory = os.path.dirname(os.path.abspath(url.database))
            os.makedirs(directory, exist_ok=True)

    engine = create_engine(database_url, echo=echo, **kwargs)
    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine):
    """
    Get a session factory bound to the engine.

    Args:
        engine: SQLAlchemy engine instance

    Returns:
        sessionmaker that creates new sessions
    """
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)

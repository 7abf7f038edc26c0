# app/db/session.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from app.core.config import settings

connect_args = (
    {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}
)

# The engine handles the connection pooling.
engine = create_engine(
    settings.DATABASE_URL, pool_pre_ping=True, connect_args=connect_args
)

# SessionLocal is a factory for creating new Session objects.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        # Always close the session, even if the endpoint raised.
        db.close()


def get_session_factory():
    """
    For WebSockets, which open a short-lived session per unit of work
    instead of holding one pooled connection for the life of the socket.
    """
    return SessionLocal

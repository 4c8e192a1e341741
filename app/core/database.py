from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from typing import Generator
import redis
import time
from .config import settings

database_url = settings.get_database_url

if database_url.startswith("sqlite"):
    # SQLite is used for local runs and tests; requests may hop threads
    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False},
    )
else:
    engine = create_engine(
        database_url,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=1800,  # Recycle connections after 30 minutes
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

class RedisMock:
    """In-process stand-in for the few redis commands the session store uses.

    Keys written with ``setex`` expire like they would in redis.
    """

    def __init__(self, clock=time.monotonic):
        self.data = {}
        self.clock = clock

    def setex(self, key, seconds, value):
        self.data[key] = (value, self.clock() + seconds)
        return True

    def get(self, key):
        entry = self.data.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if self.clock() >= expires_at:
            del self.data[key]
            return None
        return value

    def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0

    def flushall(self):
        self.data.clear()
        return True

# Booking sessions live in redis; tests use the in-process mock
if settings.TESTING:
    redis_client = RedisMock()
else:
    redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)

# Database dependency
def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# Redis dependency
def get_redis():
    """Get Redis client."""
    return redis_client

# Database initialization
def init_db():
    """Initialize database tables."""
    # Register every model on Base.metadata before creating tables
    from ..models import appointment, department, doctor, user  # noqa: F401

    Base.metadata.create_all(bind=engine)

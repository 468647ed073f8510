from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from pydantic_settings import BaseSettings
from functools import lru_cache, wraps
import logging

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./khatam_tracker.db"

    # Period oracle (Gregorian -> Hijri conversion service)
    period_api_url: str = "https://api.aladhan.com/v1/gToH"
    period_api_timeout: float = 5.0
    period_api_enabled: bool = True

    # Claims
    anonymous_name: str = "Anonymous"
    max_name_length: int = 64

    log_level: str = "INFO"

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()

# SQLite needs check_same_thread=False: FastAPI runs sync routes in a thread pool
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if settings.database_url.startswith("sqlite") else {},
    pool_pre_ping=True
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    FastAPI dependency: provides a database Session

    The session is closed once the request finishes.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def transactional(func):
    """
    Transaction decorator: makes a block of store operations atomic

    Usage:
        @transactional
        def some_store_operation(db: Session, ...):
            db.add(HistoryEntry(...))
            # no manual commit, the decorator handles it

    If the wrapped function raises:
        - the session is rolled back
        - the exception is re-raised for the caller to handle

    Notes:
        - the first argument (or the `db` keyword) must be a Session
        - do not commit inside the wrapped function
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        db = None
        if args and isinstance(args[0], Session):
            db = args[0]
        elif 'db' in kwargs:
            db = kwargs['db']

        if db is None:
            raise ValueError(
                f"@transactional requires 'db: Session' as first argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        try:
            result = func(*args, **kwargs)
            db.commit()
            return result
        except Exception as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise

    return wrapper

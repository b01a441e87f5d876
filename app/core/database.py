# =====================================================
# FILE: app/core/database.py
# Database Connection and Session Management
# =====================================================

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import NullPool, QueuePool, StaticPool
from contextlib import contextmanager
from typing import Generator
from urllib.parse import quote_plus
import logging

from app.core.config import settings

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)


def build_database_url() -> str:
    """
    Build the database URL. DATABASE_URL wins when set, otherwise the URL is
    assembled from components with the password URL-encoded.
    """
    if settings.DATABASE_URL:
        return settings.DATABASE_URL

    encoded_password = quote_plus(settings.DB_PASSWORD)
    return f"mysql+pymysql://{settings.DB_USER}:{encoded_password}@{settings.DB_HOST}:{settings.DB_PORT}/{settings.DB_NAME}"


def build_engine_args(database_url: str) -> dict:
    """Engine keyword arguments for the given URL and environment."""
    engine_args = {"echo": settings.DB_ECHO}

    if database_url.startswith("sqlite"):
        engine_args["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite+pysqlite://"):
            # One shared connection, otherwise every checkout sees an empty database
            engine_args["poolclass"] = StaticPool
        return engine_args

    engine_args["pool_pre_ping"] = settings.DB_POOL_PRE_PING
    if settings.DEBUG:
        # Use NullPool for development (no connection pooling)
        engine_args["poolclass"] = NullPool
    else:
        engine_args["pool_size"] = settings.DB_POOL_SIZE
        engine_args["max_overflow"] = settings.DB_MAX_OVERFLOW
        engine_args["poolclass"] = QueuePool
    return engine_args


def enable_sqlite_foreign_keys(target_engine) -> None:
    """SQLite ignores ON DELETE clauses unless foreign keys are switched on per connection."""
    if target_engine.dialect.name != "sqlite":
        return

    @event.listens_for(target_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


DATABASE_URL = build_database_url()

# Create database engine
try:
    engine = create_engine(DATABASE_URL, **build_engine_args(DATABASE_URL))
    enable_sqlite_foreign_keys(engine)
    logger.info(f"Database engine created for {engine.url.render_as_string(hide_password=True)}")
except Exception as e:
    logger.error(f"Failed to create database engine: {str(e)}")
    raise

# Create SessionLocal class
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False
)

# Create Base class for models
Base = declarative_base()


# Dependency to get DB session
def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency for FastAPI
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()


# Context manager for database sessions
@contextmanager
def get_db_session():
    """
    Context manager for database operations outside of FastAPI requests
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception as e:
        logger.error(f"Database operation failed: {str(e)}")
        session.rollback()
        raise
    finally:
        session.close()


def test_connection(bind=None) -> bool:
    """
    Test database connection
    """
    try:
        with (bind or engine).connect() as conn:
            conn.execute(text("SELECT 1"))
            logger.info("Database connection test successful")
            return True
    except Exception as e:
        logger.error(f"Database connection test failed: {str(e)}")
        return False


# Initialize database tables
def init_db(bind=None):
    """
    Create all tables that do not exist yet
    """
    # Register every model on Base.metadata
    import app.models  # noqa: F401

    try:
        Base.metadata.create_all(bind=bind or engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Failed to create database tables: {str(e)}")
        raise


# Drop all tables (use with caution!)
def drop_all_tables(bind=None):
    """
    Drop all tables from the database
    WARNING: This will delete all data!
    """
    try:
        Base.metadata.drop_all(bind=bind or engine)
        logger.info("All database tables dropped successfully")
    except Exception as e:
        logger.error(f"Failed to drop database tables: {str(e)}")
        raise

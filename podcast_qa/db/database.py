"""
Relational database engine and session management.

Provides:
- Session-per-operation pattern through Database.get_session()
- NullPool connection handling and SQLite pragmas (WAL, foreign keys, timeouts)
- URL validation and connectivity checks with file-based logging

Foreign keys are enforced on SQLite so that deleting an episode cascades to
its transcript chunks.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator
from urllib.parse import urlparse

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool

from podcast_qa.logger import log_function, setup_logging
from .models import Base


db_logger = setup_logging(
    logger_name="database",
    log_file="logs/database.log",
    verbose=False,
)


def validate_database_url(url: str) -> tuple[bool, str]:
    """Validate the database URL; for SQLite also check the parent directory.

    Returns:
        tuple[bool, str]: (is_valid, database path or error message)
    """
    if not url:
        return False, "DATABASE_URL is empty"
    try:
        parsed = urlparse(url)
    except ValueError as e:
        return False, f"Invalid database URL format: {e}"

    if not parsed.scheme:
        return False, f"Database URL has no scheme: {url}"

    if not parsed.scheme.startswith("sqlite"):
        return True, url

    db_path = url.split("///", 1)[1] if "///" in url else ""
    if not db_path:
        return False, "Database file path is empty"
    if db_path == ":memory:":
        return True, db_path

    parent_dir = Path(db_path).parent
    if not parent_dir.exists():
        return False, f"Database directory does not exist: {parent_dir}"
    return True, db_path


def optimize_sqlite_connection(dbapi_connection, connection_record):
    """Apply SQLite-specific settings when a connection is created."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=30000")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


class Database:
    """Engine plus session factory for one database URL.

    Args:
        database_url: SQLAlchemy URL, e.g. "sqlite:///data/podcast_qa.db".

    Raises:
        ValueError: If the URL is invalid.
    """

    def __init__(self, database_url: str):
        is_valid, db_info = validate_database_url(database_url)
        if not is_valid:
            db_logger.error(f"Database configuration error: {db_info}")
            raise ValueError(f"Database configuration error: {db_info}")

        self.database_url = database_url
        self.is_sqlite = database_url.startswith("sqlite")

        connect_args = {"check_same_thread": False, "timeout": 30} if self.is_sqlite else {}
        self.engine = create_engine(
            database_url,
            poolclass=NullPool,
            echo=False,
            connect_args=connect_args,
        )
        if self.is_sqlite:
            event.listen(self.engine, "connect", optimize_sqlite_connection)

        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )
        db_logger.info(f"Database configured: {db_info}")

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """
        Context manager for database sessions (session-per-operation pattern).

        Usage:
            with database.get_session() as session:
                session.add(episode)
                session.commit()
        """
        session = self.SessionLocal()
        try:
            yield session
        except OperationalError as e:
            db_logger.error(f"Database operational error: {e}")
            session.rollback()
            error_msg = str(e.orig) if getattr(e, "orig", None) is not None else str(e)
            if "no such table" in error_msg.lower():
                raise OperationalError(
                    "Database table does not exist. Call Database.init_database() first.",
                    None,
                    e.orig,
                ) from e
            raise
        except SQLAlchemyError as e:
            db_logger.error(f"Database error: {e}")
            session.rollback()
            raise
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @log_function(logger_name="database", log_execution_time=True)
    def init_database(self) -> None:
        """Create all tables defined in the models (idempotent)."""
        Base.metadata.create_all(bind=self.engine)
        db_logger.info("Database tables created successfully")

    @log_function(logger_name="database", log_execution_time=True)
    def check_connection(self) -> bool:
        """
        Check if database connection is working.

        Returns:
            bool: True if connection is successful, False otherwise
        """
        try:
            with self.get_session() as session:
                session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            db_logger.error(f"Database connection test failed: {e}")
            return False

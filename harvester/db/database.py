"""
Database management module for Thread Harvester.

This module provides a DatabaseManager class and utilities for handling the
database engine, sessions and per-table schema creation.

Key features:
- One long-lived engine shared by every source
- Lazy CREATE IF NOT EXISTS per table on first use
- Consistent error handling with custom exceptions
"""

import logging
import threading
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, func, select, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from .models import Base
from harvester.api.exceptions import DatabaseConnectionError, SchemaError
from harvester.utils.error_handling import log_error

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Manages the database engine, sessions and table creation.
    
    Attributes:
        engine: SQLAlchemy engine instance for database connections
        session_factory: Factory function for creating new database sessions
    """
    
    def __init__(self, database_url: Optional[str] = None, engine: Optional[Engine] = None,
                 pool_size: int = 2, max_overflow: int = 2, pool_timeout: int = 30,
                 pool_recycle: int = 1800, connect_timeout: int = 10):
        """Initialize the database manager.
        
        Args:
            database_url: Database connection URL (PostgreSQL only)
            engine: Pre-built engine to use instead of ``database_url``
            pool_size: Connection pool size
            max_overflow: Maximum number of connections to overflow
            pool_timeout: Seconds to wait for a connection from the pool
            pool_recycle: Seconds after which a connection is recycled
            connect_timeout: Seconds allowed for establishing a connection
            
        Raises:
            DatabaseConnectionError: When database URL is invalid or engine creation fails
        """
        self._ensured_tables = set()
        self._schema_lock = threading.Lock()
        
        if engine is not None:
            self.engine = engine
            self.session_factory = sessionmaker(autoflush=False, bind=self.engine)
            return
        
        if not database_url:
            raise DatabaseConnectionError("No database URL configured")
        
        try:
            url = make_url(database_url)
        except Exception as e:
            raise DatabaseConnectionError(f"Invalid database URL: {e}") from e
        
        if url.get_backend_name() != "postgresql":
            error_msg = "Only PostgreSQL is supported. DATABASE_URL must start with 'postgresql'"
            log_error(logger, error_msg, level="critical", component="DatabaseManager")
            raise DatabaseConnectionError(error_msg)
        
        logger.info(f"Creating database manager with URL: {url.render_as_string(hide_password=True)}")
        
        try:
            self.engine = create_engine(
                url,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
                pool_recycle=pool_recycle,
                pool_pre_ping=True,
                connect_args={
                    "connect_timeout": connect_timeout,
                    "application_name": "thread_harvester",
                    # Server-side statement timeout in milliseconds
                    "options": "-c statement_timeout=30000",
                },
            )
            self.session_factory = sessionmaker(autoflush=False, bind=self.engine)
        except Exception as e:
            error_msg = f"Failed to create database engine: {e}"
            log_error(logger, error_msg, exception=e, level="critical", component="DatabaseManager")
            raise DatabaseConnectionError(error_msg) from e
        
    def ensure_table(self, model) -> None:
        """Create the table for ``model`` if it does not exist yet.
        
        Runs at most once per table per process once it has succeeded; a
        failed attempt is repeated on the next call.
        
        Args:
            model: ORM model class whose table is required
            
        Raises:
            SchemaError: When the DDL fails
        """
        table = model.__table__
        if table.name in self._ensured_tables:
            return
        
        with self._schema_lock:
            if table.name in self._ensured_tables:
                return
            try:
                Base.metadata.create_all(bind=self.engine, tables=[table], checkfirst=True)
            except SQLAlchemyError as e:
                raise SchemaError(f"Failed to create table {table.name}: {e}", table=table.name) from e
            
            self._ensured_tables.add(table.name)
            logger.info(f"Table {table.name} is ready")
            
    def init_db(self) -> None:
        """Create every table the harvester writes to.
        
        Raises:
            SchemaError: When the DDL fails for any table
        """
        for mapper in Base.registry.mappers:
            self.ensure_table(mapper.class_)
            
    def get_session(self) -> Session:
        """Get a new database session."""
        return self.session_factory()
        
    def test_connection(self) -> bool:
        """Test the database connection.
        
        Returns:
            True if connection successful, False otherwise
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            log_error(logger, "Database connection test failed", exception=e, 
                     level="error", component="DatabaseManager", operation="test_connection")
            return False
            
    def count_rows(self, model) -> int:
        """Return the number of rows in the table for ``model``."""
        with self.get_session() as session:
            return session.scalar(select(func.count()).select_from(model)) or 0
            
    def cleanup(self) -> None:
        """Dispose of the engine and all its database connections."""
        if self.engine:
            self.engine.dispose()
            logger.debug("Database engine disposed")


@contextmanager
def session_scope(db_manager: DatabaseManager) -> Generator[Session, None, None]:
    """Provide a transactional scope around a series of operations.
    
    Commits on success and rolls back on any exception, which is re-raised
    unchanged for the caller to classify.
    
    Args:
        db_manager: Database manager instance
        
    Yields:
        Database session
    """
    session = db_manager.get_session()
    try:
        yield session
        session.commit()
    except BaseException:
        session.rollback()
        raise
    finally:
        session.close()

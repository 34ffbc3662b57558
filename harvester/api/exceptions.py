"""
Exceptions for Thread Harvester.

This module contains common exceptions used throughout the codebase.
All components should use these exception classes for consistency.
"""

from typing import Optional


# Base exceptions for different components
class SourceException(Exception):
    """Base exception for all errors raised by source adapters."""
    pass


class DatabaseException(Exception):
    """Base exception for all database-related errors."""
    pass


class ConfigException(Exception):
    """Base exception for all configuration-related errors."""
    pass


class ApplicationException(Exception):
    """Base exception for application-level errors."""
    pass


# Source adapter exceptions
class InvalidRepoURLError(SourceException):
    """Exception raised when a repository URL is not of the form host/owner/repo."""

    def __init__(self, url: str):
        super().__init__(f"invalid repository URL: {url}")
        self.url = url


class RemoteFetchError(SourceException):
    """Exception raised on network, authentication, timeout or HTTP status errors."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class DecodeError(SourceException):
    """Exception raised when a remote payload cannot be decoded."""
    pass


class ParseError(DecodeError):
    """Exception raised when an HTML page cannot be parsed into a document."""
    pass


# Database exceptions
class DatabaseConnectionError(DatabaseException):
    """Exception raised when connection to database fails."""
    pass


class SchemaError(DatabaseException):
    """Exception raised when the table DDL fails."""

    def __init__(self, message: str, table: Optional[str] = None):
        super().__init__(message)
        self.table = table


class InsertError(DatabaseException):
    """Exception raised when a row insert fails.

    Rows inserted before the failing one stay committed; ``inserted`` holds
    their count and ``index`` the position of the failing record in the batch.
    """

    def __init__(self, message: str, table: Optional[str] = None,
                 index: int = 0, inserted: int = 0):
        super().__init__(message)
        self.table = table
        self.index = index
        self.inserted = inserted


# Config exceptions
class ConfigurationError(ConfigException):
    """Exception raised when there's an error in configuration."""
    pass


class MissingConfigError(ConfigException):
    """Exception raised when a required configuration value is missing."""
    pass


# Application exceptions
class InitializationError(ApplicationException):
    """Exception raised when component initialization fails."""
    pass

"""
Error handling utilities for Thread Harvester.

This module provides utility functions for consistent error logging and
reporting across the codebase.
"""

import logging
from datetime import datetime
from typing import Optional


def format_error_context(error: Exception, operation: str = "", **additional_context) -> dict:
    """Format error information with context for consistent error reporting.
    
    Args:
        error: The exception that was raised
        operation: Name of the operation that failed
        **additional_context: Additional context to include
        
    Returns:
        Dictionary with formatted error information
    """
    error_info = {
        "error_type": error.__class__.__name__,
        "message": str(error),
        "timestamp": datetime.now().isoformat(),
        "operation": operation,
    }
    error_info.update(additional_context)
    return error_info


def log_error(
    logger: logging.Logger,
    message: str,
    exception: Optional[Exception] = None,
    level: str = "error",
    **context
) -> None:
    """Log errors with consistent format and context.
    
    Centralized error logging function that ensures consistent formatting and
    contextual information across the codebase.
    
    Args:
        logger: Logger to use
        message: Error message
        exception: Optional exception that caused the error
        level: Log level (critical, error, warning, info)
        **context: Additional context to include (source, window, etc.)
    
    Example:
        log_error(logger, "Failed to fetch issues", exception=e,
                 source="prometheus/prometheus", window="48h")
    """
    context_str = ""
    if context:
        context_str = " Context: " + ", ".join(f"{k}={v}" for k, v in context.items())
    
    if exception is not None:
        full_message = f"{message}: {exception}{context_str}"
    else:
        full_message = f"{message}{context_str}"
    
    # Tracebacks only for errors; warnings carry the exception text alone
    exc_info = exception is not None and level in ("critical", "error")
    
    if level == "critical":
        logger.critical(full_message, exc_info=exc_info)
    elif level == "error":
        logger.error(full_message, exc_info=exc_info)
    elif level == "warning":
        logger.warning(full_message)
    else:
        logger.info(full_message)


def mask_secret(value: Optional[str]) -> str:
    """Mask a secret for logging, keeping only a short prefix and suffix."""
    if not value:
        return ""
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}...{value[-4:]}"

"""
Logging configuration and error handling framework for Section Navigator.
"""

import logging
import sys
from typing import Optional


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Set up logging configuration for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("section_navigator")
    logger.setLevel(getattr(logging, level.upper()))

    # Avoid duplicate handlers
    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(getattr(logging, level.upper()))
        return logger

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(getattr(logging, level.upper()))

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


class SectionNavigatorError(Exception):
    """Base exception for section inference errors."""
    pass


class PageExtractionError(SectionNavigatorError):
    """Exception raised when the text of a page cannot be read."""
    pass


class DestinationResolutionError(SectionNavigatorError):
    """Exception raised when a link or outline destination cannot be resolved."""
    pass


class SectionExportError(SectionNavigatorError):
    """Exception raised when the section payload cannot be produced or written."""
    pass


class InferenceCancelled(SectionNavigatorError):
    """Raised inside a pass that was superseded by a newer document load."""
    pass


def handle_document_error(source: str, error: Exception, logger: logging.Logger) -> None:
    """
    Handle document processing errors with appropriate logging.

    Args:
        source: Path or name of the document that caused the error
        error: The exception that occurred
        logger: Logger instance for error reporting
    """
    error_msg = f"Error processing document '{source}': {str(error)}"

    if isinstance(error, SectionNavigatorError):
        logger.error(error_msg)
    else:
        logger.exception(error_msg)


def safe_execute(func, *args, default=None, logger: Optional[logging.Logger] = None, **kwargs):
    """
    Safely execute a function with error handling.

    Args:
        func: Function to execute
        *args: Positional arguments for the function
        default: Default value to return on error
        logger: Logger instance for error reporting
        **kwargs: Keyword arguments for the function

    Returns:
        Function result or default value on error
    """
    try:
        return func(*args, **kwargs)
    except InferenceCancelled:
        raise
    except Exception as e:
        if logger:
            logger.warning(f"Error executing {getattr(func, '__name__', func)}: {str(e)}")
        return default

"""
Database Exception Classes for the Uptime Monitor

Storage failures. These propagate out of the repositories and abort
only the monitor iteration that triggered them.
"""

from __future__ import annotations

import re
from typing import Any, Optional

from exceptions.base import UptimeMonitorException


class DatabaseException(UptimeMonitorException):
    """
    Base Database Exception

    Parent class for all database-related exceptions.
    """

    default_error_code = 2000
    default_recoverable = False

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        table: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        """
        Initialize database exception.

        Args:
            message: Error message
            query: The SQL query that caused the error (sanitized)
            table: The database table involved
            **kwargs: Additional arguments
        """
        super().__init__(message, **kwargs)

        if query:
            self.details["query"] = self._sanitize_query(query)

        if table:
            self.details["table"] = table

    @staticmethod
    def _sanitize_query(query: str) -> str:
        """Strip literal values from a SQL string before it is logged."""
        query = re.sub(r"'[^']*'", "'***'", query)
        query = re.sub(r"= \d+", "= ***", query)

        if len(query) > 500:
            query = query[:500] + "..."

        return query


# Name used throughout the engine for "anything the store raised".
StorageFailure = DatabaseException


class DatabaseConnectionError(DatabaseException):
    """
    Database Connection Error

    Raised when unable to establish or maintain database connection.
    """

    default_error_code = 2001

    def __init__(
        self,
        message: str = "Unable to connect to database",
        host: Optional[str] = None,
        port: Optional[int] = None,
        database: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)

        if host:
            self.details["host"] = host

        if port:
            self.details["port"] = port

        if database:
            self.details["database"] = database


class DatabaseQueryError(DatabaseException):
    """
    Database Query Error

    Raised when a statement fails inside a session.
    """

    default_error_code = 2002


class DatabaseNotFoundError(DatabaseException):
    """
    Database Not Found Error

    Raised when a requested record does not exist.
    """

    default_error_code = 2003
    default_recoverable = True

    def __init__(
        self,
        message: str = "Record not found",
        model: Optional[str] = None,
        record_id: Optional[Any] = None,
        **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)

        if model:
            self.details["model"] = model

        if record_id is not None:
            self.details["record_id"] = record_id

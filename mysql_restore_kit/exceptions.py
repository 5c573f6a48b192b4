"""Exceptions raised by mysql-restore-kit."""

import typing as t


class MySQLRestoreKitError(Exception):
    """Base class for all mysql-restore-kit errors."""

    pass


class InfrastructureError(MySQLRestoreKitError):
    """A query failed for a reason unrelated to feature support.

    Carries the last server error and the statement that produced it.
    """

    def __init__(
        self,
        kind: str,
        message: str,
        last_error: t.Optional[str] = None,
        statement: t.Optional[str] = None,
    ):
        """Constructor."""
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.last_error = last_error
        self.statement = statement

    def __repr__(self) -> str:
        """Override."""
        return f"{self.__class__.__name__}(kind={self.kind!r}, message={self.message!r})"

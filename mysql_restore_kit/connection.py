"""Connection wrappers used by the inspector, the sorting engine and the SQL mode manager."""

import logging
import typing as t

import mysql.connector
from mysql.connector.conversion import MySQLConverter

from .mysql_utils import is_plain_identifier
from .types import RawHandle


Row = t.Dict[str, t.Any]


class DatabaseConnection:
    """Managed connection.

    Every query reports failure through its return value instead of raising, and keeps the
    last error message and statement around for error reports. Errors are logged unless
    they are suppressed, which is what capability probes do.
    """

    def __init__(self, connection: t.Any, logger: t.Optional[logging.Logger] = None):
        """Constructor."""
        self._connection = connection
        self._logger = logger or logging.getLogger(self.__class__.__name__)
        self._suppress_errors: bool = False
        self.last_error: str = ""
        self.last_query: str = ""

    @property
    def raw(self) -> t.Any:
        """Return the wrapped mysql.connector connection."""
        return self._connection

    @property
    def database(self) -> t.Optional[str]:
        """Return the current database name."""
        return getattr(self._connection, "database", None)

    def suppress_errors(self, suppress: bool = True) -> bool:
        """Turn error logging off (or back on) and return the previous state."""
        previous: bool = self._suppress_errors
        self._suppress_errors = suppress
        return previous

    def _run(self, query: str, params: t.Optional[t.Sequence[t.Any]] = None) -> t.Tuple[int, t.List[Row]]:
        cursor = self._connection.cursor(dictionary=True)
        try:
            cursor.execute(query, params)
            rows: t.List[Row] = list(cursor.fetchall()) if cursor.with_rows else []
            return cursor.rowcount, rows
        finally:
            cursor.close()

    def _attempt(
        self, query: str, params: t.Optional[t.Sequence[t.Any]] = None
    ) -> t.Optional[t.Tuple[int, t.List[Row]]]:
        self.last_query = query
        self.last_error = ""
        try:
            return self._run(query, params)
        except mysql.connector.Error as err:
            self.last_error = str(err.msg) if getattr(err, "msg", None) else str(err)
            if self._suppress_errors:
                self._logger.debug("MySQL query failed: %s (%s)", self.last_error, query)
            else:
                self._logger.error("MySQL query failed: %s (%s)", self.last_error, query)
            return None

    def query(self, query: str, params: t.Optional[t.Sequence[t.Any]] = None) -> t.Optional[int]:
        """Run a statement and return the affected row count, or None on failure."""
        result = self._attempt(query, params)
        if result is None:
            return None
        rowcount: int = result[0]
        return max(rowcount, 0)

    def get_results(self, query: str, params: t.Optional[t.Sequence[t.Any]] = None) -> t.Optional[t.List[Row]]:
        """Run a query and return its rows as dicts, or None on failure."""
        result = self._attempt(query, params)
        if result is None:
            return None
        return result[1]

    def get_var(self, query: str, params: t.Optional[t.Sequence[t.Any]] = None) -> t.Any:
        """Return the first column of the first row, or None."""
        rows = self.get_results(query, params)
        if not rows:
            return None
        return next(iter(rows[0].values()), None)

    def read_session_variable(self, variable_name: str) -> t.Any:
        """Read a session variable. Returns False when the name is unusable or the query fails."""
        if not is_plain_identifier(variable_name):
            self._logger.warning("Refusing to read session variable with invalid name %r", variable_name)
            return False
        rows = self.get_results(f"SELECT @@SESSION.{variable_name}")
        if rows is None:
            return False
        if not rows:
            return None
        value = next(iter(rows[0].values()), None)
        if isinstance(value, (bytes, bytearray)):
            return value.decode()
        return value

    def write_session_variable(self, variable_name: str, value: str) -> bool:
        """Set a session variable through a parameterized statement."""
        if not is_plain_identifier(variable_name):
            self._logger.warning("Refusing to write session variable with invalid name %r", variable_name)
            return False
        return self.query(f"SET SESSION {variable_name} = %s", (value,)) is not None


class RawConnection:
    """Raw mysql.connector handle.

    Session variables are read and written with hand-escaped statements, matching what
    the restore pipeline does on its own dedicated handle.
    """

    HANDLE_TYPES: t.Tuple[type, ...] = t.get_args(RawHandle)

    def __init__(self, handle: RawHandle, logger: t.Optional[logging.Logger] = None):
        """Constructor."""
        self._handle = handle
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    @classmethod
    def supports(cls, handle: t.Any) -> bool:
        """Check whether the handle is a mysql.connector connection."""
        return isinstance(handle, cls.HANDLE_TYPES)

    @staticmethod
    def escape(value: t.Any) -> str:
        """Escape a value for interpolation inside single quotes."""
        escaped = MySQLConverter.escape(str(value))
        return escaped.decode() if isinstance(escaped, (bytes, bytearray)) else str(escaped)

    def _fetch_first(self, query: str) -> t.Any:
        cursor = self._handle.cursor()
        try:
            cursor.execute(query)
            rows = cursor.fetchall() if cursor.with_rows else []
        finally:
            cursor.close()
        if not rows or not rows[0]:
            return None
        return rows[0][0]

    def read_session_variable(self, variable_name: str) -> t.Any:
        """Read a session variable. False on failure, None if there was no value."""
        if not self.supports(self._handle):
            return False
        try:
            value = self._fetch_first(f"SELECT @@SESSION.{self.escape(variable_name)}")
        except mysql.connector.Error as err:
            self._logger.debug("Reading session variable %s failed: %s", variable_name, err)
            return False
        if isinstance(value, (bytes, bytearray)):
            return value.decode()
        return value

    def write_session_variable(self, variable_name: str, value: str) -> bool:
        """Set a session variable."""
        if not self.supports(self._handle):
            return False
        cursor = self._handle.cursor()
        try:
            cursor.execute(f"SET SESSION {self.escape(variable_name)}='{self.escape(value)}'")
        except mysql.connector.Error as err:
            self._logger.debug("Writing session variable %s failed: %s", variable_name, err)
            return False
        finally:
            cursor.close()
        return True

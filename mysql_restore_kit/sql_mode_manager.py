"""Relax the session SQL mode for restores."""

import logging
import typing as t

from .connection import DatabaseConnection, RawConnection
from .mysql_utils import MYSQL_SQL_MODE_BLOCKLIST, parse_sql_modes
from .types import RawHandle


SessionConnection = t.Union[DatabaseConnection, RawConnection]


class SQLModeManager:
    """Read, merge and write the session sql_mode."""

    def __init__(
        self,
        connection: t.Optional[DatabaseConnection] = None,
        logger: t.Optional[logging.Logger] = None,
    ):
        """Constructor.

        Args:
            connection: Managed connection used when configure_sql_mode() is not given one.
            logger: Logger to report mode changes to.
        """
        self._connection = connection
        self._logger = logger or logging.getLogger(self.__class__.__name__)
        self.blocklist: t.Tuple[str, ...] = MYSQL_SQL_MODE_BLOCKLIST

    def _resolve(self, connection: t.Union[SessionConnection, RawHandle, None]) -> t.Optional[SessionConnection]:
        if connection is None:
            return self._connection
        if isinstance(connection, (DatabaseConnection, RawConnection)):
            return connection
        if RawConnection.supports(connection):
            return RawConnection(connection, logger=self._logger)
        self._logger.warning("Unsupported connection handle %s; leaving sql_mode untouched", type(connection).__name__)
        return None

    def merge_sql_modes(
        self,
        current_modes: str,
        modes_to_add: t.Iterable[str] = (),
        modes_to_remove: t.Iterable[str] = (),
    ) -> str:
        """Return the new sql_mode string: additions first, then current modes, minus the exclusions."""
        exclusions: t.Set[str] = set(self.blocklist).union(mode.strip().upper() for mode in modes_to_remove)
        merged: t.List[str] = parse_sql_modes(",".join(modes_to_add)) + parse_sql_modes(current_modes)
        return ",".join(mode for mode in dict.fromkeys(merged) if mode not in exclusions)

    def configure_sql_mode(
        self,
        modes_to_add: t.Iterable[str] = (),
        modes_to_remove: t.Iterable[str] = (),
        connection: t.Union[SessionConnection, RawHandle, None] = None,
    ) -> t.Optional[bool]:
        """Merge, filter and apply the session sql_mode.

        Returns:
            None when the current mode could not be read (nothing was changed), otherwise
            whether writing the new mode succeeded.
        """
        session = self._resolve(connection)
        if session is None:
            return None

        current_modes = session.read_session_variable("sql_mode")
        if isinstance(current_modes, (bytes, bytearray)):
            current_modes = current_modes.decode()
        if not isinstance(current_modes, str):
            self._logger.warning("Unable to read the current sql_mode; leaving it untouched")
            return None

        new_modes: str = self.merge_sql_modes(current_modes, modes_to_add, modes_to_remove)
        self._logger.debug("Changing sql_mode from %r to %r", current_modes, new_modes)
        return session.write_session_variable("sql_mode", new_modes)

    def read_session_variable(self, variable_name: str, db_handle: RawHandle) -> t.Any:
        """Read a session variable through a raw mysql.connector handle."""
        if not RawConnection.supports(db_handle):
            return False
        return RawConnection(db_handle, logger=self._logger).read_session_variable(variable_name)

    def write_session_variable(self, variable_name: str, value: str, db_handle: RawHandle) -> bool:
        """Set a session variable through a raw mysql.connector handle."""
        if not RawConnection.supports(db_handle):
            return False
        return RawConnection(db_handle, logger=self._logger).write_session_variable(variable_name, value)

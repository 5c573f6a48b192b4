"""Entry point used by the backup and restore pipeline."""

import logging
import typing as t
from os.path import realpath
from sys import stdout

import mysql.connector

from .capability_cache import SchemaCapabilityCache
from .connection import DatabaseConnection, RawConnection
from .generated_column_parser import GeneratedColumnParser
from .mysql_utils import get_mysql_version, is_mariadb
from .schema_inspector import SchemaInspector
from .sorting_engine import WORDPRESS_DATABASE_TYPE, TableSortingEngine
from .sql_helpers import backquote
from .sql_mode_manager import SQLModeManager
from .types import (
    DatabaseUtilityAttributes,
    DatabaseUtilityParams,
    GeneratedColumn,
    GeneratedColumnSupport,
    RawHandle,
    RoutineDescriptor,
    RoutineSupport,
    TableInfo,
)


try:
    # Python 3.11+
    from typing import Unpack  # type: ignore[attr-defined]
except ImportError:
    # Python < 3.11
    from typing_extensions import Unpack  # type: ignore


class DatabaseUtility(DatabaseUtilityAttributes):
    """One instance per backup/restore session.

    Builds the sorting engine, the SQL mode manager, the schema inspector and the
    generated column parser up front. The inspector stores its probe results in a
    capability cache that lives as long as this object.
    """

    def __init__(self, **kwargs: Unpack[DatabaseUtilityParams]):
        """Constructor."""
        self._quiet = kwargs.get("quiet") or False

        self._logger = self._setup_logger(log_file=kwargs.get("log_file") or None, quiet=self._quiet)

        self._database_type = str(kwargs.get("database_type") or WORDPRESS_DATABASE_TYPE)

        table_prefix = kwargs.get("table_prefix")
        self._table_prefix = str(table_prefix) if table_prefix is not None else "wp_"

        self._mysql_version = None
        self._is_mariadb = False

        connection = kwargs.get("connection")
        if connection is not None:
            self._connection = self._wrap_connection(connection)
        else:
            self._connection = self._connect(**kwargs)

        self._capability_cache = SchemaCapabilityCache()
        self._sorting_engine = TableSortingEngine(
            database_type=self._database_type,
            table_prefix=self._table_prefix,
            core_tables=kwargs.get("core_tables"),
            logger=self._logger,
        )
        self._mode_manager = SQLModeManager(connection=self._connection, logger=self._logger)
        self._schema_inspector = SchemaInspector(
            connection=self._connection,
            cache=self._capability_cache,
            table_prefix=self._table_prefix,
            quiet=self._quiet,
            logger=self._logger,
        )
        self._column_parser = GeneratedColumnParser()

    def _wrap_connection(self, connection: t.Any) -> DatabaseConnection:
        if isinstance(connection, DatabaseConnection):
            return connection
        if RawConnection.supports(connection):
            return DatabaseConnection(connection, logger=self._logger)
        raise ValueError("Please provide a mysql.connector connection or a DatabaseConnection")

    def _connect(self, **kwargs: t.Any) -> DatabaseConnection:
        if not kwargs.get("mysql_user"):
            raise ValueError("Please provide a MySQL user")

        if not kwargs.get("mysql_database"):
            raise ValueError("Please provide a MySQL database")

        self._mysql_user = str(kwargs.get("mysql_user"))
        self._mysql_password = str(kwargs.get("mysql_password")) if kwargs.get("mysql_password") else None
        self._mysql_host = str(kwargs.get("mysql_host") or "localhost")
        self._mysql_port = int(kwargs.get("mysql_port") or 3306)
        self._mysql_socket = str(kwargs.get("mysql_socket")) if kwargs.get("mysql_socket") else None
        self._mysql_ssl_disabled = bool(kwargs.get("mysql_ssl_disabled") or False)
        self._mysql_database = str(kwargs.get("mysql_database"))
        self._mysql_charset = str(kwargs.get("mysql_charset") or "utf8mb4")

        connection_args: t.Dict[str, t.Any] = {
            "user": self._mysql_user,
            "password": self._mysql_password,
            "database": self._mysql_database,
            "charset": self._mysql_charset,
            "ssl_disabled": self._mysql_ssl_disabled,
            "use_pure": True,
        }
        if self._mysql_socket is not None:
            connection_args["unix_socket"] = self._mysql_socket
        else:
            connection_args["host"] = self._mysql_host
            connection_args["port"] = self._mysql_port

        try:
            _mysql_connection = mysql.connector.connect(**connection_args)
            if not _mysql_connection.is_connected():
                raise ConnectionError("Unable to connect to MySQL")
        except mysql.connector.Error as err:
            self._logger.error(err)
            raise

        return DatabaseConnection(_mysql_connection, logger=self._logger)

    @classmethod
    def _setup_logger(cls, log_file: t.Optional[str] = None, quiet: bool = False) -> logging.Logger:
        formatter = logging.Formatter(fmt="%(asctime)s %(levelname)-8s %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        logger = logging.getLogger(cls.__name__)
        logger.setLevel(logging.DEBUG)

        if not quiet:
            screen_handler = logging.StreamHandler(stream=stdout)
            screen_handler.setFormatter(formatter)
            logger.addHandler(screen_handler)

        if log_file:
            file_handler = logging.FileHandler(realpath(log_file), mode="w")
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

        return logger

    def _get_mysql_version(self) -> t.Optional[str]:
        rows = self._connection.get_results("SHOW VARIABLES LIKE 'version'")
        if not rows:
            self._logger.error("MySQL failed checking for the server version: %s", self._connection.last_error)
            return None
        return str(rows[0].get("Value"))

    @property
    def connection(self) -> DatabaseConnection:
        """Return the managed connection."""
        return self._connection

    @property
    def capability_cache(self) -> SchemaCapabilityCache:
        """Return the session's capability cache."""
        return self._capability_cache

    @property
    def mysql_version(self) -> t.Optional[str]:
        """Return the server version string, e.g. 10.6.12-MariaDB."""
        if self._mysql_version is None:
            self._mysql_version = self._get_mysql_version()
            if self._mysql_version is not None:
                self._is_mariadb = is_mariadb(self._mysql_version)
                self._logger.debug(
                    "Connected to %s %s",
                    "MariaDB" if self._is_mariadb else "MySQL",
                    get_mysql_version(self._mysql_version),
                )
        return self._mysql_version

    @property
    def is_mariadb(self) -> bool:
        """Check whether the server is MariaDB."""
        return self.mysql_version is not None and self._is_mariadb

    @staticmethod
    def backquote(name: str) -> str:
        """Enclose an SQL identifier in backticks."""
        return backquote(name)

    def sort_tables_for_backup(self, first_table: TableInfo, second_table: TableInfo) -> int:
        """Compare two tables for dump order."""
        return self._sorting_engine.compare(first_table, second_table)

    def sort_tables(self, tables: t.Iterable[TableInfo]) -> t.List[TableInfo]:
        """Return the tables in dump order."""
        return self._sorting_engine.sort(tables)

    def list_tables(self) -> t.List[TableInfo]:
        """Return the tables and views of the current database in dump order."""
        rows = self._connection.get_results("SHOW FULL TABLES")
        if rows is None:
            return []
        tables: t.List[TableInfo] = []
        for row in rows:
            values = list(row.values())
            if len(values) < 2:
                continue
            table_type = str(values[1]).upper()
            tables.append(TableInfo(str(values[0]), "VIEW" if table_type == "VIEW" else "TABLE"))
        return self.sort_tables(tables)

    def check_composite_key_exists(self, table_name: str, connection: t.Optional[DatabaseConnection] = None) -> bool:
        """Check whether a table has a composite primary key."""
        return self._schema_inspector.has_composite_primary_key(table_name, connection)

    def write_db_session_var(self, variable_name: str, value: str, db_handle: RawHandle) -> bool:
        """Set a session variable on a raw mysql.connector handle."""
        return self._mode_manager.write_session_variable(variable_name, value, db_handle)

    def read_db_session_var(self, variable_name: str, db_handle: RawHandle) -> t.Any:
        """Read a session variable from a raw mysql.connector handle."""
        return self._mode_manager.read_session_variable(variable_name, db_handle)

    def configure_db_sql_mode(
        self,
        modes_to_add: t.Iterable[str] = (),
        modes_to_remove: t.Iterable[str] = (),
        db_handle: t.Optional[RawHandle] = None,
    ) -> t.Optional[bool]:
        """Relax the session sql_mode for a restore."""
        return self._mode_manager.configure_sql_mode(modes_to_add, modes_to_remove, db_handle)

    def check_insert_has_generated_cols(
        self, insert_statement: str, generated_columns: t.Iterable[str]
    ) -> t.Optional[bool]:
        """Check whether an INSERT statement writes to generated columns."""
        return self._column_parser.contains_generated_columns(insert_statement, generated_columns)

    def parse_generated_col_definition(
        self, column_definition: str, starting_offset: int = 0
    ) -> t.Optional[GeneratedColumn]:
        """Parse a generated column definition."""
        return self._column_parser.extract_column_definition(column_definition, starting_offset)

    def parse_generated_cols(self, create_table_sql: str, starting_offset: int = 0) -> t.List[GeneratedColumn]:
        """Parse every generated column of a CREATE TABLE statement."""
        return self._column_parser.extract_column_definitions(create_table_sql, starting_offset)

    def detect_generated_col_support(self, engine: str = "") -> t.Optional[GeneratedColumnSupport]:
        """Probe generated column support."""
        return self._schema_inspector.detect_generated_column_support(engine)

    def detect_routine_support(self) -> RoutineSupport:
        """Probe stored routine support."""
        return self._schema_inspector.detect_stored_routine_support()

    def fetch_all_routines(self) -> t.List[RoutineDescriptor]:
        """Return every stored routine of the current database."""
        return self._schema_inspector.fetch_stored_routines()

    def convert_generated_col_to_stored(
        self, table_name: str, column: GeneratedColumn, engine: str = ""
    ) -> t.Optional[str]:
        """Build the ALTER TABLE statement that makes a generated column STORED.

        Returns:
            None if the server does not support generated columns for the engine.
        """
        support = self.detect_generated_col_support(engine)
        if support is None:
            return None
        return self._column_parser.alter_column_to_stored(table_name, column, support)

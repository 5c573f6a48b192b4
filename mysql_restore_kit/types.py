"""Types for mysql-restore-kit."""

import typing as t
from enum import Enum
from logging import Logger

import typing_extensions as tx
from mysql.connector.abstracts import MySQLConnectionAbstract
from mysql.connector.pooling import PooledMySQLConnection


if t.TYPE_CHECKING:
    from .capability_cache import SchemaCapabilityCache
    from .connection import DatabaseConnection
    from .generated_column_parser import GeneratedColumnParser
    from .schema_inspector import SchemaInspector
    from .sorting_engine import TableSortingEngine
    from .sql_mode_manager import SQLModeManager


RawHandle = t.Union[MySQLConnectionAbstract, PooledMySQLConnection]


class RoutineKind(str, Enum):
    """Kind of stored routine as reported by SHOW ... STATUS."""

    FUNCTION = "FUNCTION"
    PROCEDURE = "PROCEDURE"


class TableInfo(t.NamedTuple):
    """A table to be ordered for a dump."""

    name: str
    type: str = "TABLE"


class SourceToken(t.NamedTuple):
    """Captured text and its absolute offset in the original SQL source."""

    text: str
    offset: int


class GeneratedColumn(t.NamedTuple):
    """A parsed generated column definition."""

    definition: str
    column_name: str
    is_virtual: bool
    tokens: t.Dict[str, SourceToken]


class GeneratedColumnSupport(t.NamedTuple):
    """Generated column features the server accepted for a storage engine."""

    persistent_supported: bool
    not_null_supported: bool
    insert_ignore_supported: bool
    virtual_index_supported: bool


class RoutineSupport(t.NamedTuple):
    """Stored routine features the server accepted."""

    create_or_replace_supported: bool
    if_not_exists_supported: bool
    aggregate_supported: bool
    binary_logging_enabled: t.Any
    function_creators_trusted: bool


class RoutineDescriptor(t.NamedTuple):
    """A stored routine merged from its status row and its SHOW CREATE row."""

    name: str
    kind: RoutineKind
    status: t.Dict[str, t.Any]
    definition: t.Dict[str, t.Any]

    @property
    def create_sql(self) -> t.Optional[str]:
        """Return the CREATE statement of the routine."""
        value = self.definition.get(f"Create {self.kind.value.capitalize()}")
        return str(value) if value is not None else None


class DatabaseUtilityParams(tx.TypedDict, total=False):
    """DatabaseUtility parameters."""

    mysql_user: t.Optional[str]
    mysql_password: t.Optional[str]
    mysql_host: t.Optional[str]
    mysql_port: t.Optional[int]
    mysql_socket: t.Optional[str]
    mysql_ssl_disabled: bool
    mysql_database: t.Optional[str]
    mysql_charset: t.Optional[str]
    database_type: t.Optional[str]
    table_prefix: t.Optional[str]
    core_tables: t.Optional[t.Union[t.Iterable[str], t.Callable[[], t.Iterable[str]]]]
    connection: t.Any
    log_file: t.Optional[str]
    quiet: bool


class DatabaseUtilityAttributes:
    """DatabaseUtility attributes."""

    _mysql_user: t.Optional[str]
    _mysql_password: t.Optional[str]
    _mysql_host: t.Optional[str]
    _mysql_port: t.Optional[int]
    _mysql_socket: t.Optional[str]
    _mysql_ssl_disabled: bool
    _mysql_database: t.Optional[str]
    _mysql_charset: str
    _database_type: str
    _table_prefix: str
    _quiet: bool
    _logger: Logger
    _mysql_version: t.Optional[str]
    _is_mariadb: bool
    _connection: "DatabaseConnection"
    _capability_cache: "SchemaCapabilityCache"
    _sorting_engine: "TableSortingEngine"
    _mode_manager: "SQLModeManager"
    _schema_inspector: "SchemaInspector"
    _column_parser: "GeneratedColumnParser"

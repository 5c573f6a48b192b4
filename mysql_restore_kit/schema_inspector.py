"""Probe the server for generated column and stored routine support."""

import logging
import random
import typing as t
from hashlib import md5
from time import time

from tqdm import tqdm

from .capability_cache import SchemaCapabilityCache
from .connection import DatabaseConnection
from .exceptions import InfrastructureError
from .mysql_utils import is_plain_identifier, safe_identifier_length
from .sql_helpers import backquote, esc_like
from .types import GeneratedColumnSupport, RoutineDescriptor, RoutineKind, RoutineSupport


class SchemaInspector:
    """Detect server capabilities with throwaway DDL/DML and read schema information.

    Probe results are stored in the session's SchemaCapabilityCache, so every probe
    runs at most once per session.
    """

    TEST_ROUTINE_NAME: str = "mrk_test_stored_routine"
    TEST_INDEX_NAME: str = "idx_mrk_generated_column_test"
    GENERATED_COLUMN_CACHE_KEY: str = "generated_column_"
    STORED_ROUTINE_CACHE_KEY: str = "stored_routine"

    def __init__(
        self,
        connection: DatabaseConnection,
        cache: t.Optional[SchemaCapabilityCache] = None,
        table_prefix: str = "",
        quiet: bool = False,
        logger: t.Optional[logging.Logger] = None,
    ):
        """Constructor.

        Args:
            connection: Managed connection the probes run on.
            cache: The session's capability cache.
            table_prefix: Prefix of the throwaway probe table.
            quiet: Hide progress bars.
            logger: Logger to report to.
        """
        self._connection = connection
        self._cache = cache if cache is not None else SchemaCapabilityCache()
        self._table_prefix = table_prefix or ""
        self._quiet = quiet
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    @property
    def cache(self) -> SchemaCapabilityCache:
        """Return the capability cache."""
        return self._cache

    def _temporary_table_name(self) -> str:
        suffix: str = f"mrk_tmp_{random.randint(0, 9999999)}{md5(str(time()).encode()).hexdigest()}"  # nosec
        # the prefix is cut, never the random part
        return safe_identifier_length(self._table_prefix, 64 - len(suffix)) + suffix

    def detect_generated_column_support(self, storage_engine: str = "") -> t.Optional[GeneratedColumnSupport]:
        """Check which generated column features the server supports.

        Args:
            storage_engine: Storage engine to probe, or "" for the server default.

        Returns:
            The supported features, or None if the server does not support generated columns.
        """
        storage_engine = storage_engine or ""
        if storage_engine and not is_plain_identifier(storage_engine):
            raise ValueError(f"Invalid storage engine name: {storage_engine!r}")

        cache_key: str = self.GENERATED_COLUMN_CACHE_KEY + storage_engine
        if cache_key in self._cache:
            return self._cache.get(cache_key)

        table: str = backquote(self._temporary_table_name())
        cleanup_sql: str = f"DROP TABLE IF EXISTS {table}"
        create_sql: str = (
            f"CREATE TABLE {table} (`virtual_column` varchar(17) GENERATED ALWAYS AS ('virtual_column') "
            "VIRTUAL COMMENT 'virtual_column')"
        )
        if storage_engine:
            create_sql += f" ENGINE={storage_engine}"

        support: t.Optional[GeneratedColumnSupport] = None
        previous_suppression: bool = self._connection.suppress_errors()
        try:
            self._connection.query(cleanup_sql)
            if self._connection.query(create_sql) is not None:
                support = GeneratedColumnSupport(
                    persistent_supported=self._connection.query(
                        f"ALTER TABLE {table} ADD `persistent_column` VARCHAR(17) AS ('persistent_column') "
                        "PERSISTENT COMMENT 'generated_column'"
                    )
                    is not None,
                    not_null_supported=self._connection.query(
                        f"ALTER TABLE {table} ADD `virtual_column_not_null` VARCHAR(17) "
                        "AS ('virtual_column_not_null') VIRTUAL NOT NULL COMMENT 'virtual_column_not_null'"
                    )
                    is not None,
                    insert_ignore_supported=bool(
                        self._connection.query(
                            f"INSERT IGNORE INTO {table} (`virtual_column`) VALUES('virtual_column')"
                        )
                    ),
                    virtual_index_supported=self._connection.query(
                        f"CREATE INDEX {backquote(self.TEST_INDEX_NAME)} ON {table} (virtual_column) "
                        "COMMENT 'virtual_column' ALGORITHM DEFAULT LOCK DEFAULT"
                    )
                    is not None,
                )
            else:
                self._logger.debug(
                    "Generated columns are not supported%s: %s",
                    f" by {storage_engine}" if storage_engine else "",
                    self._connection.last_error,
                )
        finally:
            self._connection.query(cleanup_sql)
            self._connection.suppress_errors(previous_suppression)

        return self._cache.store(cache_key, support)

    @staticmethod
    def _normalise_switch(value: t.Any) -> t.Any:
        if isinstance(value, (bytes, bytearray)):
            value = value.decode()
        if isinstance(value, bool):
            return value
        if isinstance(value, int):
            if value in (0, 1):
                return bool(value)
            return value
        if isinstance(value, str):
            if value.upper() == "ON" or value == "1":
                return True
            if value.upper() == "OFF" or value == "0":
                return False
        return value

    def _binary_logging_status(self) -> t.Any:
        status = self._connection.get_var("SELECT @@GLOBAL.log_bin")
        if status is None:
            rows = self._connection.get_results("SHOW GLOBAL VARIABLES LIKE %s", (esc_like("log_bin"),))
            if rows and rows[0].get("Value") not in (None, ""):
                status = rows[0]["Value"]
        return self._normalise_switch(status)

    def detect_stored_routine_support(self) -> RoutineSupport:
        """Check which stored routine features the server supports.

        Raises:
            InfrastructureError: If the test function could not be created at all. The error
                is cached, later calls raise it again without probing.
        """
        if self.STORED_ROUTINE_CACHE_KEY in self._cache:
            cached = self._cache.get(self.STORED_ROUTINE_CACHE_KEY)
            if isinstance(cached, InfrastructureError):
                raise cached
            return cached

        routine: str = self.TEST_ROUTINE_NAME
        signature: str = f"{routine}() RETURNS tinyint(1) DETERMINISTIC READS SQL DATA"
        drop_sql: str = f"DROP FUNCTION IF EXISTS {routine}"
        create_sql: str = f"CREATE FUNCTION {signature} RETURN true"

        result: t.Union[RoutineSupport, InfrastructureError]
        previous_suppression: bool = self._connection.suppress_errors()
        try:
            self._connection.query(drop_sql)
            if self._connection.query(create_sql) is None:
                last_error: str = self._connection.last_error
                result = InfrastructureError(
                    "routine_creation_error",
                    "An error occurred while attempting to check the support of stored routines creation "
                    f"({last_error} - {create_sql})",
                    last_error=last_error,
                    statement=create_sql,
                )
            else:
                result = RoutineSupport(
                    create_or_replace_supported=self._connection.query(
                        f"CREATE OR REPLACE FUNCTION {signature} RETURN true"
                    )
                    is not None,
                    if_not_exists_supported=self._connection.query(
                        f"CREATE FUNCTION IF NOT EXISTS {signature} RETURN true"
                    )
                    is not None,
                    aggregate_supported=self._connection.query(
                        f"CREATE OR REPLACE AGGREGATE FUNCTION {signature} "
                        "BEGIN RETURN true; FETCH GROUP NEXT ROW; END"
                    )
                    is not None,
                    binary_logging_enabled=self._binary_logging_status(),
                    function_creators_trusted=self._normalise_switch(
                        self._connection.get_var("SELECT @@GLOBAL.log_bin_trust_function_creators")
                    )
                    is True,
                )
        finally:
            self._connection.query(drop_sql)
            self._connection.suppress_errors(previous_suppression)

        result = self._cache.store(self.STORED_ROUTINE_CACHE_KEY, result)
        if isinstance(result, InfrastructureError):
            self._logger.error(result.message)
            raise result
        return result

    def _routine_status(self, kind: RoutineKind) -> t.List[t.Dict[str, t.Any]]:
        rows = self._connection.get_results(f"SHOW {kind.value} STATUS WHERE Db = %s", (self._connection.database,))
        if rows is None:
            raise InfrastructureError(
                "routine_status_error",
                "An error occurred while attempting to retrieve routine status "
                f"({self._connection.last_error} - {self._connection.last_query})",
                last_error=self._connection.last_error,
                statement=self._connection.last_query,
            )
        return rows

    def fetch_stored_routines(self) -> t.List[RoutineDescriptor]:
        """Return every stored function and procedure of the current database.

        Raises:
            InfrastructureError: If the routine list or one of the routine definitions
                could not be read.
        """
        previous_suppression: bool = self._connection.suppress_errors()
        try:
            status_rows: t.List[t.Dict[str, t.Any]] = self._routine_status(
                RoutineKind.FUNCTION
            ) + self._routine_status(RoutineKind.PROCEDURE)

            routines: t.List[RoutineDescriptor] = []
            for row in tqdm(status_rows, desc="Reading stored routines", disable=self._quiet):
                name = row.get("Name")
                kind_name = str(row.get("Type") or "").upper()
                if not name or kind_name not in RoutineKind.__members__:
                    self._logger.debug("Skipping routine status row without a name or a known type: %r", row)
                    continue

                kind = RoutineKind(kind_name)
                definition = self._connection.get_results(f"SHOW CREATE {kind.value} {backquote(name)}")
                if definition is None:
                    raise InfrastructureError(
                        "routine_sql_error",
                        "An error occurred while attempting to retrieve the routine SQL/DDL statement "
                        f"({self._connection.last_error} - {self._connection.last_query})",
                        last_error=self._connection.last_error,
                        statement=self._connection.last_query,
                    )
                routines.append(
                    RoutineDescriptor(
                        name=str(name),
                        kind=kind,
                        status=dict(row),
                        definition=dict(definition[0]) if definition else {},
                    )
                )
            return routines
        except InfrastructureError as err:
            self._logger.error(err.message)
            raise
        finally:
            self._connection.suppress_errors(previous_suppression)

    def has_composite_primary_key(self, table_name: str, connection: t.Optional[DatabaseConnection] = None) -> bool:
        """Check whether a table's primary key spans more than one column."""
        rows = (connection or self._connection).get_results(f"DESCRIBE {backquote(table_name)}")
        if not rows:
            return False

        primary_key_columns: int = 0
        for column in rows:
            if column.get("Key") == "PRI":
                primary_key_columns += 1
                if primary_key_columns > 1:
                    return True
        return False

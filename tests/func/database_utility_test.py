import typing as t

import pytest
from click.testing import CliRunner, Result
from mysql.connector import MySQLConnection

from mysql_restore_kit import DatabaseUtility
from mysql_restore_kit.cli import cli
from mysql_restore_kit.schema_inspector import SchemaInspector
from mysql_restore_kit.types import GeneratedColumnSupport, RoutineKind, RoutineSupport, TableInfo
from tests.conftest import MySQLCredentials


def _execute(connection: MySQLConnection, *statements: str) -> None:
    cursor = connection.cursor()
    try:
        for statement in statements:
            cursor.execute(statement)
    finally:
        cursor.close()


def _fetch_all(connection: MySQLConnection, query: str) -> t.List[t.Tuple[t.Any, ...]]:
    cursor = connection.cursor()
    try:
        cursor.execute(query)
        return list(cursor.fetchall())
    finally:
        cursor.close()


@pytest.fixture()
def utility(mysql_connection: MySQLConnection) -> DatabaseUtility:
    return DatabaseUtility(connection=mysql_connection, quiet=True)


@pytest.mark.func
@pytest.mark.usefixtures("mysql_instance")
class TestDatabaseUtility:
    def test_mysql_version(self, utility: DatabaseUtility) -> None:
        assert utility.mysql_version
        assert utility.is_mariadb is ("-mariadb" in utility.mysql_version.lower())

    def test_detect_generated_col_support(self, utility: DatabaseUtility, mysql_connection: MySQLConnection) -> None:
        support = utility.detect_generated_col_support("InnoDB")

        assert isinstance(support, GeneratedColumnSupport)
        assert support.virtual_index_supported is True
        assert utility.detect_generated_col_support("InnoDB") is support
        assert _fetch_all(mysql_connection, "SHOW TABLES LIKE 'wp\\_mrk\\_tmp\\_%'") == []

    def test_detect_generated_col_support_unknown_engine(self, utility: DatabaseUtility) -> None:
        support = utility.detect_generated_col_support("NoSuchEngine")
        # the server substitutes its default engine unless NO_ENGINE_SUBSTITUTION is set
        assert support is None or isinstance(support, GeneratedColumnSupport)

    def test_detect_routine_support(self, utility: DatabaseUtility, mysql_connection: MySQLConnection) -> None:
        support = utility.detect_routine_support()

        assert isinstance(support, RoutineSupport)
        assert isinstance(support.create_or_replace_supported, bool)
        assert utility.detect_routine_support() is support
        assert (
            _fetch_all(
                mysql_connection,
                f"SHOW FUNCTION STATUS WHERE Name = '{SchemaInspector.TEST_ROUTINE_NAME}'",
            )
            == []
        )

    def test_fetch_all_routines(self, utility: DatabaseUtility, mysql_connection: MySQLConnection) -> None:
        _execute(
            mysql_connection,
            "DROP FUNCTION IF EXISTS `wp_double`",
            "DROP PROCEDURE IF EXISTS `wp_noop`",
            "CREATE FUNCTION `wp_double`(x INT) RETURNS INT DETERMINISTIC RETURN x * 2",
            "CREATE PROCEDURE `wp_noop`() BEGIN END",
        )
        try:
            routines = {routine.name: routine for routine in utility.fetch_all_routines()}

            assert routines["wp_double"].kind is RoutineKind.FUNCTION
            assert routines["wp_noop"].kind is RoutineKind.PROCEDURE
            assert "RETURN x * 2" in routines["wp_double"].create_sql
            assert "`wp_noop`" in routines["wp_noop"].create_sql
        finally:
            _execute(mysql_connection, "DROP FUNCTION IF EXISTS `wp_double`", "DROP PROCEDURE IF EXISTS `wp_noop`")

    def test_configure_db_sql_mode(self, utility: DatabaseUtility) -> None:
        utility.connection.write_session_variable("sql_mode", "STRICT_TRANS_TABLES,ANSI_QUOTES")

        assert utility.configure_db_sql_mode(["NO_AUTO_VALUE_ON_ZERO"]) is True

        modes = str(utility.connection.read_session_variable("sql_mode")).split(",")
        assert "NO_AUTO_VALUE_ON_ZERO" in modes
        assert "ANSI_QUOTES" in modes
        assert "STRICT_TRANS_TABLES" not in modes

    def test_session_variables_on_raw_handle(self, utility: DatabaseUtility, mysql_connection: MySQLConnection) -> None:
        assert utility.write_db_session_var("foreign_key_checks", "0", mysql_connection) is True
        assert str(utility.read_db_session_var("foreign_key_checks", mysql_connection)) == "0"
        assert utility.write_db_session_var("foreign_key_checks", "1", mysql_connection) is True

    def test_list_tables_and_composite_keys(self, utility: DatabaseUtility, mysql_connection: MySQLConnection) -> None:
        _execute(
            mysql_connection,
            "CREATE TABLE `wp_zz_plugin` (`id` INT NOT NULL PRIMARY KEY)",
            "CREATE TABLE `wp_posts` (`ID` BIGINT NOT NULL PRIMARY KEY)",
            "CREATE TABLE `wp_options` (`option_id` BIGINT NOT NULL PRIMARY KEY)",
            "CREATE TABLE `wp_term_relationships` (`object_id` BIGINT NOT NULL, `term_taxonomy_id` BIGINT NOT NULL, "
            "PRIMARY KEY (`object_id`, `term_taxonomy_id`))",
            "CREATE VIEW `wp_aa_view` AS SELECT `ID` FROM `wp_posts`",
        )

        assert utility.list_tables() == [
            TableInfo("wp_options"),
            TableInfo("wp_posts"),
            TableInfo("wp_term_relationships"),
            TableInfo("wp_zz_plugin"),
            TableInfo("wp_aa_view", "VIEW"),
        ]
        assert utility.check_composite_key_exists("wp_term_relationships") is True
        assert utility.check_composite_key_exists("wp_posts") is False
        assert utility.check_composite_key_exists("wp_missing") is False

    def test_parse_show_create_table(self, utility: DatabaseUtility, mysql_connection: MySQLConnection) -> None:
        _execute(
            mysql_connection,
            "CREATE TABLE `wp_orders` (`id` INT NOT NULL PRIMARY KEY, `price` DECIMAL(10,2) NOT NULL, "
            "`total` DECIMAL(12,2) AS (`price` * 2) VIRTUAL COMMENT 'virtual, (doubled)', "
            "`net` DECIMAL(12,2) AS (`price` - 1) STORED)",
        )
        create_table_sql: str = _fetch_all(mysql_connection, "SHOW CREATE TABLE `wp_orders`")[0][1]

        columns = utility.parse_generated_cols(create_table_sql)
        assert [(column.column_name, column.is_virtual) for column in columns] == [("total", True), ("net", False)]
        for column in columns:
            for token in column.tokens.values():
                assert create_table_sql[token.offset : token.offset + len(token.text)] == token.text

        assert utility.check_insert_has_generated_cols(
            "INSERT INTO `wp_orders` (`id`, `price`) VALUES (1, 2.50)", [column.column_name for column in columns]
        ) is False

        statement = utility.convert_generated_col_to_stored("wp_orders", columns[0], "InnoDB")
        assert statement is not None
        assert statement.startswith("ALTER TABLE `wp_orders` CHANGE `total` `total` ")
        assert " STORED" in statement
        assert "VIRTUAL" not in statement.upper()


@pytest.mark.cli
@pytest.mark.usefixtures("mysql_instance")
class TestCli:
    def _arguments(self, mysql_credentials: MySQLCredentials) -> t.List[str]:
        return [
            "-u",
            mysql_credentials.user,
            "--mysql-password",
            mysql_credentials.password,
            "-d",
            mysql_credentials.database,
            "-h",
            mysql_credentials.host,
            "-P",
            str(mysql_credentials.port),
            "-q",
        ]

    def test_tables(self, cli_runner: CliRunner, mysql_credentials: MySQLCredentials, mysql_connection) -> None:
        _execute(mysql_connection, "CREATE TABLE `wp_posts` (`ID` BIGINT NOT NULL PRIMARY KEY)")
        result: Result = cli_runner.invoke(cli, self._arguments(mysql_credentials) + ["tables"])
        assert result.exit_code == 0, result.output
        assert "wp_posts" in result.output

    def test_probe(self, cli_runner: CliRunner, mysql_credentials: MySQLCredentials) -> None:
        result: Result = cli_runner.invoke(cli, self._arguments(mysql_credentials) + ["probe", "-e", "InnoDB"])
        assert result.exit_code == 0, result.output
        assert "InnoDB" in result.output

    def test_invalid_password(self, cli_runner: CliRunner, mysql_credentials: MySQLCredentials) -> None:
        arguments = self._arguments(mysql_credentials)
        arguments[arguments.index("--mysql-password") + 1] = mysql_credentials.password + "_wrong"
        result: Result = cli_runner.invoke(cli, arguments + ["tables"])
        assert result.exit_code > 0
        assert "Access denied" in result.output

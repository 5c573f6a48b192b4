"""The command line interface of mysql-restore-kit."""

import re
import sys
import typing as t
from contextlib import contextmanager

import click
from tabulate import tabulate

from . import DatabaseUtility
from .__version__ import __version__
from .click_utils import prompt_password, split_comma_separated
from .debug_info import info
from .generated_column_parser import GeneratedColumnParser
from .types import GeneratedColumnSupport


CREATE_TABLE_PATTERN: t.Pattern[str] = re.compile(
    r"CREATE\s+(?:TEMPORARY\s+)?TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?`((?:[^`]|``)+)`",
    re.IGNORECASE,
)


def _yes_no(value: t.Any) -> str:
    if isinstance(value, bool):
        return "yes" if value else "no"
    return str(value)


@contextmanager
def _handle_errors(ctx: click.Context) -> t.Iterator[None]:
    try:
        yield
    except KeyboardInterrupt:
        click.echo("\nProcess interrupted. Exiting...")
        sys.exit(1)
    except click.ClickException:
        raise
    except Exception as err:  # pylint: disable=W0703
        if ctx.obj.get("debug"):
            raise
        click.echo(err)
        sys.exit(1)


def _database_utility(ctx: click.Context) -> DatabaseUtility:
    return DatabaseUtility(**ctx.obj["params"])


@click.group()
@click.option("-d", "--mysql-database", default=None, help="MySQL database name")
@click.option("-u", "--mysql-user", default=None, help="MySQL user")
@click.option(
    "-p",
    "--prompt-mysql-password",
    is_flag=True,
    default=False,
    callback=prompt_password,
    help="Prompt for MySQL password",
)
@click.option("--mysql-password", default=None, help="MySQL password")
@click.option("-h", "--mysql-host", default="localhost", help="MySQL host. Defaults to localhost.")
@click.option("-P", "--mysql-port", type=int, default=3306, help="MySQL port. Defaults to 3306.")
@click.option("--mysql-socket", type=click.Path(), default=None, help="Path to MySQL unix socket file.")
@click.option("-S", "--skip-ssl", is_flag=True, help="Disable MySQL connection encryption.")
@click.option("--mysql-charset", default="utf8mb4", show_default=True, help="MySQL connection character set")
@click.option(
    "-t",
    "--database-type",
    default="wp",
    show_default=True,
    help='Database flavour. "wp" orders WordPress core tables first.',
)
@click.option("--table-prefix", default="wp_", show_default=True, help="Table name prefix")
@click.option("-l", "--log-file", type=click.Path(), help="Log file")
@click.option("-q", "--quiet", is_flag=True, help="Quiet. Display only errors.")
@click.option("--debug", is_flag=True, help="Debug mode. Will throw exceptions.")
@click.version_option(
    version=__version__,
    message=tabulate(info(), headers=["software", "version"], tablefmt="github"),
)
@click.pass_context
def cli(
    ctx: click.Context,
    mysql_database: t.Optional[str],
    mysql_user: t.Optional[str],
    prompt_mysql_password: t.Optional[str],
    mysql_password: t.Optional[str],
    mysql_host: str,
    mysql_port: int,
    mysql_socket: t.Optional[str],
    skip_ssl: bool,
    mysql_charset: str,
    database_type: str,
    table_prefix: str,
    log_file: t.Optional[str],
    quiet: bool,
    debug: bool,
) -> None:
    """Inspect a MySQL/MariaDB server the way a backup or restore run sees it."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["quiet"] = quiet
    ctx.obj["params"] = {
        "mysql_user": mysql_user,
        "mysql_password": mysql_password or prompt_mysql_password,
        "mysql_database": mysql_database,
        "mysql_host": mysql_host,
        "mysql_port": mysql_port,
        "mysql_socket": mysql_socket,
        "mysql_ssl_disabled": skip_ssl,
        "mysql_charset": mysql_charset.lower() if mysql_charset else "utf8mb4",
        "database_type": database_type,
        "table_prefix": table_prefix,
        "log_file": log_file,
        "quiet": quiet,
    }


@cli.command()
@click.option(
    "-e",
    "--engine",
    "engines",
    multiple=True,
    callback=split_comma_separated,
    help="Storage engine(s) to probe (comma separated or repeated). Defaults to the server default engine.",
)
@click.pass_context
def probe(ctx: click.Context, engines: t.Tuple[str, ...]) -> None:
    """Show generated column support per storage engine."""
    with _handle_errors(ctx):
        utility = _database_utility(ctx)
        rows: t.List[t.List[str]] = []
        for engine in engines or ("",):
            support = utility.detect_generated_col_support(engine)
            if support is None:
                rows.append([engine or "(default)", "no", "", "", "", ""])
                continue
            rows.append([engine or "(default)", "yes"] + [_yes_no(value) for value in support])
        click.echo(
            tabulate(
                rows,
                headers=["engine", "generated", "persistent", "not null", "insert ignore", "virtual index"],
                tablefmt="github",
            )
        )


@cli.command()
@click.option("--show-sql", is_flag=True, help="Print the CREATE statement of every routine.")
@click.pass_context
def routines(ctx: click.Context, show_sql: bool) -> None:
    """Show stored routine support and list the routines of the database."""
    with _handle_errors(ctx):
        utility = _database_utility(ctx)
        support = utility.detect_routine_support()
        click.echo(
            tabulate(
                [[field.replace("_", " "), _yes_no(value)] for field, value in support._asdict().items()],
                headers=["feature", "supported"],
                tablefmt="github",
            )
        )

        stored_routines = utility.fetch_all_routines()
        click.echo()
        click.echo(
            tabulate(
                [[routine.name, routine.kind.value, routine.status.get("Definer", "")] for routine in stored_routines],
                headers=["routine", "type", "definer"],
                tablefmt="github",
            )
        )
        if show_sql:
            for routine in stored_routines:
                click.echo()
                click.echo(routine.create_sql or "")


@cli.command()
@click.pass_context
def tables(ctx: click.Context) -> None:
    """Show the tables of the database in dump order."""
    with _handle_errors(ctx):
        utility = _database_utility(ctx)
        click.echo(
            tabulate(
                [[position, table.name, table.type] for position, table in enumerate(utility.list_tables(), start=1)],
                headers=["#", "table", "type"],
                tablefmt="github",
            )
        )


@cli.command("sql-mode")
@click.option(
    "-a",
    "--add",
    "modes_to_add",
    multiple=True,
    callback=split_comma_separated,
    help="SQL mode(s) to add (comma separated or repeated).",
)
@click.option(
    "-r",
    "--remove",
    "modes_to_remove",
    multiple=True,
    callback=split_comma_separated,
    help="SQL mode(s) to remove on top of the restore blocklist (comma separated or repeated).",
)
@click.pass_context
def sql_mode(ctx: click.Context, modes_to_add: t.Tuple[str, ...], modes_to_remove: t.Tuple[str, ...]) -> None:
    """Relax the session sql_mode and show it before and after."""
    with _handle_errors(ctx):
        utility = _database_utility(ctx)
        before = utility.connection.read_session_variable("sql_mode")
        result = utility.configure_db_sql_mode(modes_to_add, modes_to_remove)
        if result is None:
            raise click.ClickException("Unable to read the current sql_mode")
        if not result:
            raise click.ClickException(f"Unable to set the sql_mode: {utility.connection.last_error}")
        after = utility.connection.read_session_variable("sql_mode")
        click.echo(tabulate([["before", before], ["after", after]], headers=["", "sql_mode"], tablefmt="github"))


@cli.command()
@click.argument("sql_file", type=click.File("r", encoding="utf-8", errors="replace"))
@click.option(
    "--alter",
    is_flag=True,
    help="Print ALTER TABLE statements that turn VIRTUAL columns "
    "(and PERSISTENT ones, unless --mariadb) into STORED ones.",
)
@click.option(
    "--mariadb",
    is_flag=True,
    help="The dump is restored on MariaDB, which understands PERSISTENT.",
)
@click.pass_context
def parse(ctx: click.Context, sql_file: t.TextIO, alter: bool, mariadb: bool) -> None:
    """Find generated columns in a SQL dump. Does not connect to MySQL."""
    with _handle_errors(ctx):
        source: str = sql_file.read()
        parser = GeneratedColumnParser()
        support = GeneratedColumnSupport(
            persistent_supported=mariadb,
            not_null_supported=True,
            insert_ignore_supported=False,
            virtual_index_supported=True,
        )

        rows: t.List[t.List[t.Any]] = []
        statements: t.List[str] = []
        for match in CREATE_TABLE_PATTERN.finditer(source):
            table_name: str = match.group(1).replace("``", "`")
            for column in parser.extract_column_definitions(source[match.start() :], match.start()):
                expression = column.tokens.get("expression")
                rows.append(
                    [
                        table_name,
                        column.column_name,
                        "VIRTUAL" if column.is_virtual else "STORED",
                        expression.offset if expression is not None else "",
                    ]
                )
                if alter and parser.stored_column_definition(column, support) != " ".join(column.definition.split()):
                    statements.append(parser.alter_column_to_stored(table_name, column, support) + ";")

        if not rows:
            click.echo("No generated columns found.")
            return

        click.echo(tabulate(rows, headers=["table", "column", "storage", "offset"], tablefmt="github"))
        for statement in statements:
            click.echo(statement)

import json
import socket
import typing as t
from codecs import open
from contextlib import contextmanager
from os.path import abspath, dirname, isfile, join
from time import sleep

import docker
import mysql.connector
import pytest
from _pytest.config import Config
from _pytest.config.argparsing import Parser
from click.testing import CliRunner
from docker import DockerClient
from docker.errors import APIError, DockerException, ImageNotFound, NotFound
from docker.models.containers import Container
from mysql.connector import MySQLConnection, errorcode

from .stubs import StubServer


CONTAINER_NAME: str = "pytest_mysql_restore_kit"


def pytest_addoption(parser: "Parser") -> None:
    parser.addoption(
        "--mysql-user",
        dest="mysql_user",
        default="tester",
        help="MySQL user. Defaults to 'tester'.",
    )

    parser.addoption(
        "--mysql-password",
        dest="mysql_password",
        default="testpass",
        help="MySQL password. Defaults to 'testpass'.",
    )

    parser.addoption(
        "--mysql-database",
        dest="mysql_database",
        default="test_db",
        help="MySQL database name. Defaults to 'test_db'.",
    )

    parser.addoption(
        "--mysql-host",
        dest="mysql_host",
        default="0.0.0.0",
        help="Test against a MySQL server running on this host. Defaults to '0.0.0.0'.",
    )

    parser.addoption(
        "--mysql-port",
        dest="mysql_port",
        type=int,
        default=None,
        help="The TCP port of the MySQL server.",
    )

    parser.addoption(
        "--no-docker",
        dest="use_docker",
        default=True,
        action="store_false",
        help="Do not use a Docker MySQL image to run the functional tests. "
        "If you decide to use this switch you will have to use a physical MySQL server.",
    )

    parser.addoption(
        "--docker-mysql-image",
        dest="docker_mysql_image",
        default="mysql:latest",
        help="Run the functional tests against a specific MySQL Docker image. Defaults to mysql:latest. "
        "MariaDB images (e.g. mariadb:latest) work as well.",
    )


def _kill_test_container() -> None:
    try:
        client: DockerClient = docker.from_env()
        for container in client.containers.list():
            if container.name == CONTAINER_NAME:
                container.kill()
                break
    except DockerException:
        pass


@pytest.fixture(scope="session", autouse=True)
def cleanup_hanged_docker_containers() -> None:
    _kill_test_container()


def pytest_keyboard_interrupt() -> None:
    _kill_test_container()


class Helpers:
    @staticmethod
    @contextmanager
    def not_raises(exception: t.Type[Exception]) -> t.Generator:
        try:
            yield
        except exception:
            raise pytest.fail(f"DID RAISE {exception}")


@pytest.fixture
def helpers() -> t.Type[Helpers]:
    return Helpers


@pytest.fixture
def stub_server() -> StubServer:
    return StubServer(database="test_db")


def is_port_in_use(port: int, host: str = "0.0.0.0") -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        return s.connect_ex((host, port)) == 0


class MySQLCredentials(t.NamedTuple):
    """MySQL credentials."""

    user: str
    password: str
    host: str
    port: int
    database: str


@pytest.fixture(scope="session")
def mysql_credentials(pytestconfig: Config) -> MySQLCredentials:
    db_credentials_file: str = abspath(join(dirname(__file__), "db_credentials.json"))
    if isfile(db_credentials_file):
        with open(db_credentials_file, "r", "utf-8") as fh:
            db_credentials: t.Dict[str, t.Any] = json.load(fh)
            return MySQLCredentials(
                user=db_credentials["mysql_user"],
                password=db_credentials["mysql_password"],
                database=db_credentials["mysql_database"],
                host=db_credentials["mysql_host"],
                port=db_credentials["mysql_port"],
            )

    port: int = pytestconfig.getoption("mysql_port") or 3306
    if pytestconfig.getoption("use_docker"):
        while is_port_in_use(port, pytestconfig.getoption("mysql_host")):
            if port >= 2**16 - 1:
                pytest.skip(f'No ports appear to be available on the host {pytestconfig.getoption("mysql_host")}')
            port += 1

    return MySQLCredentials(
        user=pytestconfig.getoption("mysql_user") or "tester",
        password=pytestconfig.getoption("mysql_password") or "testpass",
        database=pytestconfig.getoption("mysql_database") or "test_db",
        host=pytestconfig.getoption("mysql_host") or "0.0.0.0",
        port=port,
    )


@pytest.fixture(scope="session")
def mysql_instance(mysql_credentials: MySQLCredentials, pytestconfig: Config) -> t.Iterator[None]:
    container: t.Optional[Container] = None
    mysql_available: bool = False
    mysql_connection_retries: int = 15  # failsafe

    db_credentials_file = abspath(join(dirname(__file__), "db_credentials.json"))
    use_docker: bool = False if isfile(db_credentials_file) else pytestconfig.getoption("use_docker")

    if use_docker:
        # the server inside the container refuses connections until its init scripts have run
        try:
            client = docker.from_env()
            docker_mysql_image = pytestconfig.getoption("docker_mysql_image") or "mysql:latest"
            if not any(docker_mysql_image in image.tags for image in client.images.list()):
                print(f"Attempting to download Docker image {docker_mysql_image}'")
                client.images.pull(docker_mysql_image)

            is_mariadb_image: bool = "mariadb" in docker_mysql_image.lower()
            container = client.containers.run(
                image=docker_mysql_image,
                name=CONTAINER_NAME,
                ports={"3306/tcp": (mysql_credentials.host, f"{mysql_credentials.port}/tcp")},
                environment={
                    "MARIADB_RANDOM_ROOT_PASSWORD" if is_mariadb_image else "MYSQL_RANDOM_ROOT_PASSWORD": "yes",
                    "MYSQL_USER": mysql_credentials.user,
                    "MYSQL_PASSWORD": mysql_credentials.password,
                    "MYSQL_DATABASE": mysql_credentials.database,
                },
                command=[
                    "--character-set-server=utf8mb4",
                    "--collation-server=utf8mb4_unicode_ci",
                    "--log-bin-trust-function-creators=1",
                ],
                detach=True,
                auto_remove=True,
            )
        except (DockerException, APIError, ImageNotFound, NotFound) as err:
            pytest.skip(f"Docker is not available: {err}")

    while not mysql_available and mysql_connection_retries > 0:
        mysql_connection: t.Optional[t.Any] = None
        try:
            mysql_connection = mysql.connector.connect(
                user=mysql_credentials.user,
                password=mysql_credentials.password,
                host=mysql_credentials.host,
                port=mysql_credentials.port,
                charset="utf8mb4",
            )
        except mysql.connector.Error as err:
            if err.errno in {errorcode.CR_SERVER_LOST, errorcode.CR_CONN_HOST_ERROR, errorcode.CR_CONNECTION_ERROR}:
                # sleep for two seconds and retry the connection
                sleep(2)
            elif not use_docker:
                pytest.skip(f"MySQL is not available: {err}")
            else:
                raise
        finally:
            mysql_connection_retries -= 1
            if mysql_connection is not None and mysql_connection.is_connected():
                mysql_available = True
                mysql_connection.close()

    if not mysql_available:
        if container is not None:
            container.kill()
        pytest.skip("Maximum MySQL connection retries exhausted! Are you sure MySQL is running?")

    yield

    if container is not None:
        container.kill()


@pytest.fixture()
def mysql_connection(mysql_instance: None, mysql_credentials: MySQLCredentials) -> t.Iterator[MySQLConnection]:
    connection = mysql.connector.connect(
        user=mysql_credentials.user,
        password=mysql_credentials.password,
        host=mysql_credentials.host,
        port=mysql_credentials.port,
        database=mysql_credentials.database,
        charset="utf8mb4",
        use_pure=True,
    )
    yield connection

    cursor = connection.cursor()
    try:
        cursor.execute("SHOW FULL TABLES")
        for name, table_type in cursor.fetchall():
            cursor.execute(f"DROP {'VIEW' if table_type == 'VIEW' else 'TABLE'} IF EXISTS `{name}`")
    finally:
        cursor.close()
        connection.close()


@pytest.fixture()
def cli_runner() -> t.Iterator[CliRunner]:
    yield CliRunner()


def pytest_configure(config: Config) -> None:
    config.addinivalue_line("markers", "cli: command line interface tests")
    config.addinivalue_line("markers", "func: tests that need a running MySQL server")

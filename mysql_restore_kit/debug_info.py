"""Bug report helper(s).

Adapted from https://github.com/psf/requests/blob/master/requests/help.py
"""

import platform
import sys
import typing as t
from shutil import which
from subprocess import check_output  # nosec

import click
import mysql.connector
import packaging
import tabulate
import tqdm

from . import __version__ as package_version


def _implementation() -> str:
    """Return the name and version of the running Python implementation, e.g. CPython 3.12.1."""
    implementation: str = platform.python_implementation()

    if implementation == "PyPy":
        pypy_version = sys.pypy_version_info  # type: ignore # pylint: disable=E1101
        implementation_version = f"{pypy_version.major}.{pypy_version.minor}.{pypy_version.micro}"
        if pypy_version.releaselevel != "final":
            implementation_version += pypy_version.releaselevel
    elif implementation in {"CPython", "Jython", "IronPython"}:
        implementation_version = platform.python_version()
    else:
        implementation_version = "Unknown"

    return f"{implementation} {implementation_version}"


def _mysql_version() -> str:
    if which("mysql") is not None:
        try:
            mysql_version: t.Union[str, bytes] = check_output(["mysql", "-V"])  # nosec
            try:
                return mysql_version.decode().strip()  # type: ignore
            except (UnicodeDecodeError, AttributeError):
                return str(mysql_version)
        except Exception:  # nosec pylint: disable=W0703
            pass
    return "MySQL client not found on the system"


def info() -> t.List[t.List[str]]:
    """Generate information for a bug report."""
    try:
        platform_info = f"{platform.system()} {platform.release()}"
    except IOError:
        platform_info = "Unknown"

    return [
        ["mysql-restore-kit", package_version],
        ["", ""],
        ["Operating System", platform_info],
        ["Python", _implementation()],
        ["MySQL", _mysql_version()],
        ["", ""],
        ["click", click.__version__],
        ["mysql-connector-python", mysql.connector.__version__],
        ["packaging", packaging.__version__],
        ["tabulate", tabulate.__version__],
        ["tqdm", tqdm.__version__],
    ]

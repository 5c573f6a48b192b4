"""MySQL helpers."""

import re
import typing as t

from packaging import version


MYSQL_STRICT_SQL_MODES: t.Tuple[str, ...] = (
    "STRICT_TRANS_TABLES",
    "STRICT_ALL_TABLES",
)

# Modes that reject historical data (zero dates, loose GROUP BY, strict inserts) during a restore.
MYSQL_SQL_MODE_BLOCKLIST: t.Tuple[str, ...] = tuple(
    dict.fromkeys(
        (
            "NO_ZERO_DATE",
            "ONLY_FULL_GROUP_BY",
            "TRADITIONAL",
        )
        + MYSQL_STRICT_SQL_MODES
    )
)

MYSQL_IDENTIFIER_PATTERN: t.Pattern[str] = re.compile(r"^\w+$")


def get_mysql_version(version_string: str) -> version.Version:
    """Get MySQL version."""
    return version.parse(re.sub("-.*$", "", version_string))


def is_mariadb(version_string: str) -> bool:
    """Check whether a server version string belongs to MariaDB."""
    return "-mariadb" in version_string.lower()


def is_plain_identifier(name: str) -> bool:
    """Check that a name can be interpolated into SQL without quoting (engine and variable names)."""
    return bool(MYSQL_IDENTIFIER_PATTERN.match(str(name)))


def parse_sql_modes(mode_string: str) -> t.List[str]:
    """Split a comma separated sql_mode value into upper-cased mode names."""
    return [mode.strip().upper() for mode in str(mode_string).split(",") if mode.strip()]


def safe_identifier_length(identifier_name: str, max_length: int = 64) -> str:
    """https://dev.mysql.com/doc/refman/8.0/en/identifier-length.html."""
    return str(identifier_name)[:max_length]

"""MySQL/MariaDB helpers for backup and restore tools."""

from .__version__ import __version__
from .database_utility import DatabaseUtility
from .exceptions import InfrastructureError, MySQLRestoreKitError

__title__ = "mysql-restore-kit"
__description__ = "Generated column parsing, capability probing and SQL mode handling for MySQL/MariaDB backups."
__url__ = "https://github.com/mysql-restore-kit/mysql-restore-kit"
__version__ = "1.0.0"
__author__ = "mysql-restore-kit contributors"
__author_email__ = "maintainers@mysql-restore-kit.dev"
__license__ = "MIT"

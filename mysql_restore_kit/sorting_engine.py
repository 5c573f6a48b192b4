"""Order tables for a backup dump."""

import logging
import typing as t
from functools import cmp_to_key

from .sql_helpers import replace_first_occurrence
from .types import TableInfo


WORDPRESS_DATABASE_TYPE: str = "wp"


def _lexical(first: t.Any, second: t.Any) -> int:
    return (first > second) - (first < second)


class TableSortingEngine:
    """Deterministic table comparator.

    Views go last. For WordPress databases a handful of infrastructure tables come
    first, then core tables, then everything else, each group in lexical order.
    """

    PRIORITY_TABLES: t.Tuple[str, ...] = ("options", "site", "blogs", "users", "usermeta")
    FALLBACK_CORE_TABLES: t.Tuple[str, ...] = (
        "terms",
        "term_taxonomy",
        "termmeta",
        "term_relationships",
        "commentmeta",
        "comments",
        "links",
        "postmeta",
        "posts",
        "site",
        "sitemeta",
        "blogs",
        "blogversions",
        "blogmeta",
    )

    def __init__(
        self,
        database_type: str,
        table_prefix: str,
        core_tables: t.Optional[t.Union[t.Iterable[str], t.Callable[[], t.Iterable[str]]]] = None,
        logger: t.Optional[logging.Logger] = None,
    ):
        """Constructor.

        Args:
            database_type: "wp" for WordPress-flavoured ordering, anything else sorts lexically.
            table_prefix: Table name prefix, e.g. "wp_".
            core_tables: Unprefixed core table names, or a callable returning them.
            logger: Logger to report core table lookup failures to.
        """
        self._database_type = database_type
        self._table_prefix = table_prefix or ""
        self._logger = logger or logging.getLogger(self.__class__.__name__)
        self._priority: t.Dict[str, int] = {
            self._table_prefix + name: position for position, name in enumerate(self.PRIORITY_TABLES)
        }
        self._core_tables: t.FrozenSet[str] = self._load_core_tables(core_tables)

    @property
    def core_tables(self) -> t.FrozenSet[str]:
        """Unprefixed core table names in use."""
        return self._core_tables

    def _load_core_tables(
        self, core_tables: t.Optional[t.Union[t.Iterable[str], t.Callable[[], t.Iterable[str]]]]
    ) -> t.FrozenSet[str]:
        names: t.FrozenSet[str] = frozenset()
        try:
            source = core_tables() if callable(core_tables) else core_tables
            names = frozenset(source or ())
        except Exception as err:  # pylint: disable=W0703
            self._logger.debug("Unable to load core table names: %s", err)
        return names or frozenset(self.FALLBACK_CORE_TABLES)

    def compare(self, first_table: TableInfo, second_table: TableInfo) -> int:
        """Compare two tables for dump order. Returns -1, 0 or 1."""
        first_name, first_type = first_table[0], first_table[1]
        second_name, second_type = second_table[0], second_table[1]

        # views depend on tables
        if first_type == "VIEW" and second_type != "VIEW":
            return 1
        if second_type == "VIEW" and first_type != "VIEW":
            return -1

        if self._database_type != WORDPRESS_DATABASE_TYPE:
            return _lexical(first_name, second_name)

        if first_name == second_name:
            return 0

        first_priority: t.Optional[int] = self._priority.get(first_name)
        second_priority: t.Optional[int] = self._priority.get(second_name)
        if first_priority is not None or second_priority is not None:
            if second_priority is None:
                return -1
            if first_priority is None:
                return 1
            return _lexical(first_priority, second_priority)

        if not self._table_prefix:
            return _lexical(first_name, second_name)

        first_is_core: bool = replace_first_occurrence(self._table_prefix, "", first_name) in self._core_tables
        second_is_core: bool = replace_first_occurrence(self._table_prefix, "", second_name) in self._core_tables
        if first_is_core and not second_is_core:
            return -1
        if second_is_core and not first_is_core:
            return 1

        return _lexical(first_name, second_name)

    def sort(self, tables: t.Iterable[TableInfo]) -> t.List[TableInfo]:
        """Return the tables in dump order."""
        return sorted(tables, key=cmp_to_key(self.compare))

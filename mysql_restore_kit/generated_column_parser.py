"""Parse generated column definitions and INSERT statements."""

import re
import typing as t

from .sql_helpers import backquote
from .types import GeneratedColumn, GeneratedColumnSupport, SourceToken


QUOTES: str = "'\"`"
PARENTHESISED_GROUP: str = r"\((?:[^()'\"]|'(?:[^']|'')*'|\"(?:[^\"]|\"\")*\"|\([^()]*\))*\)"
ATTRIBUTE_WORDS: str = rf"(?:[\w\s]|{PARENTHESISED_GROUP})*"
QUOTED_COMMENT: str = r"COMMENT\s*(?:'(?:[^']|'')*'|\"(?:[^\"]|\"\")*\")"


class GeneratedColumnParser:
    """Recognise generated (VIRTUAL/STORED/PERSISTENT) columns in dump SQL.

    Purely textual; nothing here talks to the database.
    """

    INSERT_PATTERN: t.Pattern[str] = re.compile(
        r"\s*insert.+?into(?:\s*`(?:[^`]|`)+?`|[^\(]+)(?:\s*\((?P<columns>.+?)\))?\s*values.+",
        re.IGNORECASE | re.DOTALL,
    )
    BACKTICKED_SPAN_PATTERN: t.Pattern[str] = re.compile(r"`((?:[^`]|`)+)`")
    COLUMN_SEPARATOR_PATTERN: t.Pattern[str] = re.compile(r"`\s*,\s*`")

    # See https://dev.mysql.com/doc/refman/8.0/en/create-table-generated-columns.html
    # The head stops at the opening parenthesis of the expression; _closing_parenthesis() finds its end.
    COLUMN_HEAD_PATTERN: t.Pattern[str] = re.compile(
        r"`(?P<column_name>(?:[^`]|``)+)`"
        r"(?P<data_type>(?:\([^()]*\)|[^,'\"()])+?)"
        r"\b(?P<expression>(?:GENERATED\s*ALWAYS\s*)?AS\s*\()",
        re.IGNORECASE,
    )
    COLUMN_TAIL_PATTERN: t.Pattern[str] = re.compile(
        rf"(?P<attributes>{ATTRIBUTE_WORDS})(?P<comment>{QUOTED_COMMENT})(?P<trailing_attributes>{ATTRIBUTE_WORDS})"
        r"|"
        rf"(?P<bare_attributes>{ATTRIBUTE_WORDS})",
        re.IGNORECASE,
    )
    PARENTHESISED_PATTERN: t.Pattern[str] = re.compile(f"({PARENTHESISED_GROUP})")
    VIRTUAL_PATTERN: t.Pattern[str] = re.compile(r"\bvirtual\b", re.IGNORECASE)
    STORED_PATTERN: t.Pattern[str] = re.compile(r"\bstored\b", re.IGNORECASE)
    PERSISTENT_PATTERN: t.Pattern[str] = re.compile(r"\bpersistent\b", re.IGNORECASE)
    NULLABILITY_PATTERN: t.Pattern[str] = re.compile(r"\b(?:not\s+null|null)\b", re.IGNORECASE)

    # token name -> named groups of COLUMN_TAIL_PATTERN that can capture it, in order of preference
    TAIL_TOKEN_GROUPS: t.Tuple[t.Tuple[str, t.Tuple[str, ...]], ...] = (
        ("attributes", ("attributes", "bare_attributes")),
        ("comment", ("comment",)),
        ("trailing_attributes", ("trailing_attributes",)),
    )
    ATTRIBUTE_TOKENS: t.FrozenSet[str] = frozenset({"attributes", "trailing_attributes"})

    def contains_generated_columns(
        self, insert_statement: str, generated_column_names: t.Iterable[str]
    ) -> t.Optional[bool]:
        """Check whether an INSERT statement writes to any of the given generated columns.

        Returns:
            None if the statement is not an ``INSERT ... VALUES`` at all, True when there is no
            explicit column list (the statement may touch every column), otherwise whether
            the column list names one of the generated columns.
        """
        match: t.Optional[t.Match[str]] = self.INSERT_PATTERN.search(insert_statement)
        if match is None:
            return None

        columns: t.Optional[t.List[str]] = self._extract_insert_columns(match.group("columns"))
        if columns is None:
            return True

        return not set(columns).isdisjoint(generated_column_names)

    @classmethod
    def _extract_insert_columns(cls, column_list: t.Optional[str]) -> t.Optional[t.List[str]]:
        if column_list is None or not column_list.strip():
            return None
        column_list = column_list.strip()
        if "`" in column_list:
            unquoted: str = cls.BACKTICKED_SPAN_PATTERN.sub(r"\1", column_list)
            return [name.replace("``", "`") for name in cls.COLUMN_SEPARATOR_PATTERN.split(unquoted)]
        return [name.strip() for name in column_list.split(",")]

    def extract_column_definition(
        self, column_definition: str, offset_position: int = 0
    ) -> t.Optional[GeneratedColumn]:
        """Parse a single column definition.

        Args:
            column_definition: A column definition fragment from a CREATE TABLE statement.
            offset_position: Position of the fragment within the original SQL source; it is
                added to every token offset.

        Returns:
            The parsed generated column, or None if the fragment is not a generated column.
        """
        head: t.Optional[t.Match[str]] = self.COLUMN_HEAD_PATTERN.search(column_definition)
        if head is None:
            return None
        expression_end: t.Optional[int] = self._closing_parenthesis(column_definition, head.end() - 1)
        if expression_end is None:
            return None
        # the bare alternative matches the empty string, so this never fails
        tail: t.Match[str] = t.cast(t.Match[str], self.COLUMN_TAIL_PATTERN.match(column_definition, expression_end))

        spans: t.List[t.Tuple[str, int, int]] = [
            ("data_type", head.start("data_type"), head.end("data_type")),
            ("expression", head.start("expression"), expression_end),
        ]
        for token_name, group_names in self.TAIL_TOKEN_GROUPS:
            for group_name in group_names:
                if tail.group(group_name):
                    spans.append((token_name, tail.start(group_name), tail.end(group_name)))
                    break

        tokens: t.Dict[str, SourceToken] = {
            token_name: SourceToken(column_definition[start:end], int(offset_position) + start)
            for token_name, start, end in spans
        }

        modifiers: str = self._bare_words(
            " ".join(tokens[name].text for name in self.ATTRIBUTE_TOKENS if name in tokens)
        )
        is_virtual: bool = bool(self.VIRTUAL_PATTERN.search(modifiers)) or not (
            self.STORED_PATTERN.search(modifiers) or self.PERSISTENT_PATTERN.search(modifiers)
        )

        return GeneratedColumn(
            definition=column_definition[head.start() : tail.end()],
            column_name=head.group("column_name").replace("``", "`"),
            is_virtual=is_virtual,
            tokens=tokens,
        )

    @staticmethod
    def _closing_parenthesis(sql: str, open_index: int) -> t.Optional[int]:
        """Return the index just past the parenthesis closing the one at open_index."""
        depth: int = 0
        quote: t.Optional[str] = None
        index: int = open_index
        while index < len(sql):
            char: str = sql[index]
            if quote is not None:
                if char == "\\" and quote != "`":
                    index += 2
                    continue
                if char == quote:
                    if sql.startswith(quote * 2, index):
                        index += 2
                        continue
                    quote = None
            elif char in QUOTES:
                quote = char
            elif char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
                if depth == 0:
                    return index + 1
            index += 1
        return None

    def _bare_words(self, text: str) -> str:
        """Drop parenthesised groups such as CHECK (...) bodies from attribute text."""
        return " ".join(self.PARENTHESISED_PATTERN.split(text)[0::2])

    def _rewrite_bare_words(self, text: str, rewrite: t.Callable[[str], str]) -> str:
        parts: t.List[str] = self.PARENTHESISED_PATTERN.split(text)
        parts[0::2] = [rewrite(part) for part in parts[0::2]]
        return "".join(parts)

    @staticmethod
    def split_column_definitions(create_table_sql: str) -> t.List[t.Tuple[str, int]]:
        """Split the body of a CREATE TABLE statement on its top-level commas.

        Returns:
            (fragment, offset) pairs, offset being the fragment's position in create_table_sql.
        """
        fragments: t.List[t.Tuple[str, int]] = []
        length: int = len(create_table_sql)
        depth: int = 0
        start: t.Optional[int] = None
        quote: t.Optional[str] = None
        index: int = 0

        while index < length:
            char: str = create_table_sql[index]
            if quote is not None:
                if char == "\\" and quote != "`":
                    index += 2
                    continue
                if char == quote:
                    if create_table_sql.startswith(quote * 2, index):
                        index += 2
                        continue
                    quote = None
                index += 1
                continue

            if char in QUOTES:
                quote = char
            elif char == "#" or create_table_sql.startswith("-- ", index):
                newline: int = create_table_sql.find("\n", index)
                index = length if newline == -1 else newline
                continue
            elif create_table_sql.startswith("/*", index):
                comment_end: int = create_table_sql.find("*/", index + 2)
                index = length if comment_end == -1 else comment_end + 2
                continue
            elif char == "(":
                depth += 1
                if depth == 1 and start is None:
                    start = index + 1
            elif char == ")":
                depth -= 1
                if depth == 0 and start is not None:
                    fragments.append((create_table_sql[start:index], start))
                    return fragments
            elif char == "," and depth == 1 and start is not None:
                fragments.append((create_table_sql[start:index], start))
                start = index + 1
            index += 1

        if start is not None and create_table_sql[start:].strip():
            fragments.append((create_table_sql[start:], start))
        return fragments

    def extract_column_definitions(self, create_table_sql: str, offset_position: int = 0) -> t.List[GeneratedColumn]:
        """Return every generated column defined in a CREATE TABLE statement."""
        columns: t.List[GeneratedColumn] = []
        for fragment, fragment_offset in self.split_column_definitions(create_table_sql):
            column = self.extract_column_definition(fragment, int(offset_position) + fragment_offset)
            if column is not None:
                columns.append(column)
        return columns

    def stored_column_definition(self, column: GeneratedColumn, support: GeneratedColumnSupport) -> str:
        """Rebuild a generated column definition so that it is STORED.

        NULL/NOT NULL is dropped where the server does not accept it on generated columns,
        and PERSISTENT becomes STORED where the server only knows the MySQL spelling.
        Parenthesised attribute bodies such as CHECK (...) are kept as they are.
        """

        def to_stored(words: str) -> str:
            if not support.not_null_supported:
                words = self.NULLABILITY_PATTERN.sub("", words)
            if not column.is_virtual and not support.persistent_supported:
                words = self.PERSISTENT_PATTERN.sub("STORED", words)
            return self.VIRTUAL_PATTERN.sub("STORED", words)

        parts: t.List[t.Tuple[str, str]] = []
        for token_name, token in column.tokens.items():
            text: str = token.text
            if token_name in self.ATTRIBUTE_TOKENS:
                text = self._rewrite_bare_words(text, to_stored)
            text = " ".join(text.split())
            if text:
                parts.append((token_name, text))

        if not any(self._declares_storage(name, text) for name, text in parts):
            expression_index: int = next(
                (position for position, (name, _) in enumerate(parts) if name == "expression"), len(parts) - 1
            )
            parts.insert(expression_index + 1, ("attributes", "STORED"))

        return " ".join([backquote(column.column_name)] + [text for _, text in parts])

    def _declares_storage(self, token_name: str, text: str) -> bool:
        if token_name not in self.ATTRIBUTE_TOKENS:
            return False
        words: str = self._bare_words(text)
        return bool(self.STORED_PATTERN.search(words) or self.PERSISTENT_PATTERN.search(words))

    def alter_column_to_stored(
        self, table_name: str, column: GeneratedColumn, support: GeneratedColumnSupport
    ) -> str:
        """Build the ALTER TABLE statement that turns a generated column into a STORED one."""
        return "ALTER TABLE {table} CHANGE {column} {definition}".format(
            table=backquote(table_name),
            column=backquote(column.column_name),
            definition=self.stored_column_definition(column, support),
        )

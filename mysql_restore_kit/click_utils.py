"""Click utilities."""

import typing as t

import click


def prompt_password(ctx: click.core.Context, param: t.Any, use_password: bool):  # pylint: disable=W0613
    """Prompt for password."""
    if use_password:
        mysql_password = ctx.params.get("mysql_password")
        if not mysql_password:
            mysql_password = click.prompt("MySQL password", hide_input=True)

        return mysql_password


def split_comma_separated(
    ctx: click.core.Context, param: t.Any, values: t.Optional[t.Iterable[str]]  # pylint: disable=W0613
) -> t.Tuple[str, ...]:
    """Flatten repeated and comma separated option values, e.g. -a A,B -a C."""
    if not values:
        return tuple()
    if isinstance(values, str):
        values = (values,)
    return tuple(item.strip() for value in values for item in value.split(",") if item.strip())

"""SQL identifier and string helpers."""


def backquote(name: str) -> str:
    """Enclose an SQL identifier in backticks, doubling any backticks it contains."""
    return "`" + str(name).replace("`", "``") + "`"


def replace_first_occurrence(needle: str, replacement: str, haystack: str) -> str:
    """Replace the first occurrence of needle in haystack."""
    location: int = haystack.find(needle)
    if needle and location != -1:
        return haystack[:location] + replacement + haystack[location + len(needle) :]
    return haystack


def replace_last_occurrence(needle: str, replacement: str, haystack: str) -> str:
    """Replace the last occurrence of needle in haystack."""
    location: int = haystack.rfind(needle)
    if needle and location != -1:
        return haystack[:location] + replacement + haystack[location + len(needle) :]
    return haystack


def esc_like(text: str) -> str:
    """Escape the LIKE wildcards and the escape character itself."""
    return str(text).replace("\\", "\\\\").replace("_", "\\_").replace("%", "\\%")

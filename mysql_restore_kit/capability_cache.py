"""Per-session cache of server capability probe results."""

import typing as t


class SchemaCapabilityCache:
    """Write-once cache of probe results.

    One instance lives for one backup/restore session and assumes a single server.
    Components probing different servers must not share an instance.
    """

    def __init__(self) -> None:
        """Constructor."""
        self._entries: t.Dict[str, t.Any] = {}

    def __contains__(self, key: object) -> bool:
        """Override."""
        return key in self._entries

    def __len__(self) -> int:
        """Override."""
        return len(self._entries)

    def get(self, key: str, default: t.Any = None) -> t.Any:
        """Return a cached value."""
        return self._entries.get(key, default)

    def store(self, key: str, value: t.Any) -> t.Any:
        """Store a value unless the key is already populated and return the cached value."""
        return self._entries.setdefault(key, value)

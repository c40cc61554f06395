"""In-memory mirror of loaded collections."""

from typing import Any

from beartype import beartype


class CollectionCache:
    """Last known contents of each collection, keyed by collection file name.

    The store refreshes an entry on every read and write; nothing relies on
    it for correctness, so dropping entries is always safe.
    """

    @beartype
    def __init__(self) -> None:
        """Initialize an empty cache."""
        self._entries: dict[str, list[dict[str, Any]]] = {}

    @beartype
    def get(self, file_name: str) -> list[dict[str, Any]] | None:
        """Return the cached documents for a file, if any."""
        return self._entries.get(file_name)

    @beartype
    def set(self, file_name: str, documents: list[dict[str, Any]]) -> None:
        """Replace the cached documents for a file."""
        self._entries[file_name] = documents

    @beartype
    def drop(self, file_name: str) -> None:
        """Forget one file (no-op if it is not cached)."""
        self._entries.pop(file_name, None)

    @beartype
    def clear(self) -> None:
        """Forget every cached file."""
        self._entries.clear()

    def keys(self) -> list[str]:
        """Cached file names."""
        return list(self._entries)

    def __contains__(self, file_name: object) -> bool:
        return file_name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

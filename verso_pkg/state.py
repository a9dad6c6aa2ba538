"""Build-scoped project state shared between preparation and generation steps."""

from typing import Any, Dict


class ProjectState:
    """Key/value store created fresh for every build.

    Each key is written exactly once per build. Preparation steps populate
    it and generation steps read from it; the page and post generators write
    disjoint keys, so no locking is done here.
    """

    def __init__(self):
        self._data: Dict[str, Any] = {}

    def put(self, key: str, value: Any) -> None:
        if key in self._data:
            raise KeyError(f"'{key}' has already been written in this build")
        self._data[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def require(self, key: str) -> Any:
        """Return ``key`` or raise ``KeyError`` naming the missing entry."""
        try:
            return self._data[key]
        except KeyError:
            raise KeyError(f"'{key}' has not been produced yet in this build") from None

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def keys(self):
        return self._data.keys()

    def snapshot(self) -> Dict[str, Any]:
        return dict(self._data)

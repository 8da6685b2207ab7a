"""
Case-insensitive, multi-valued HTTP header map.

HTTP header names are case-insensitive (RFC 7230) and a name may appear
more than once (Set-Cookie, X-Forwarded-For from several proxies). The map
keeps every (name, value) pair in arrival order and the spelling of the
first occurrence of each name for output.

    headers = Headers()
    headers.add("Accept", "text/html")
    headers.add("accept", "application/json")
    headers.get("ACCEPT")          # "text/html"
    headers.get_all("accept")      # ["text/html", "application/json"]
    headers.set("Accept", "*/*")   # replaces both
"""

from typing import Dict, Iterable, Iterator, List, Optional, Tuple


class Headers:
    def __init__(self, items: Optional[Iterable[Tuple[str, str]]] = None):
        self._items: List[Tuple[str, str]] = []
        if items:
            for name, value in items:
                self.add(name, value)

    def add(self, name: str, value: str) -> None:
        self._items.append((name, str(value)))

    def set(self, name: str, value: str) -> None:
        self.remove(name)
        self._items.append((name, str(value)))

    def setdefault(self, name: str, value: str) -> str:
        if name not in self:
            self.add(name, value)
        return self.get(name)

    def remove(self, name: str) -> None:
        key = name.lower()
        self._items = [(n, v) for n, v in self._items if n.lower() != key]

    def get(self, name: str, default: str = "") -> str:
        key = name.lower()
        for n, v in self._items:
            if n.lower() == key:
                return v
        return default

    def get_all(self, name: str) -> List[str]:
        key = name.lower()
        return [v for n, v in self._items if n.lower() == key]

    def items(self) -> List[Tuple[str, str]]:
        return list(self._items)

    def to_dict(self) -> Dict[str, List[str]]:
        """Name (first spelling seen) -> all values."""
        result: Dict[str, List[str]] = {}
        spelling: Dict[str, str] = {}
        for n, v in self._items:
            name = spelling.setdefault(n.lower(), n)
            result.setdefault(name, []).append(v)
        return result

    def copy(self) -> "Headers":
        return Headers(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        key = name.lower()
        return any(n.lower() == key for n, _ in self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(self.to_dict())

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"Headers({self._items!r})"

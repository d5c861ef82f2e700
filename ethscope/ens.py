from typing import Iterable, Iterator, Optional

from ethscope.models import normalize_address


class EnsCache:
    """Address to ENS name, where a known name is never replaced by "no name"."""

    def __init__(self) -> None:
        self._names: dict[str, Optional[str]] = {}

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and normalize_address(address) in self._names

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def insert(self, address: str, name: Optional[str]) -> None:
        key = normalize_address(address)
        if name is not None:
            self._names[key] = name
        elif key not in self._names:
            self._names[key] = None

    def merge(self, entries: Iterable[tuple[str, Optional[str]]]) -> None:
        for address, name in entries:
            self.insert(address, name)

    def get(self, address: str) -> Optional[str]:
        return self._names.get(normalize_address(address))

    def missing(self, addresses: Iterable[str]) -> list[str]:
        """Addresses with no entry at all, in order and without duplicates."""
        pending: dict[str, None] = {}
        for address in addresses:
            key = normalize_address(address)
            if key and key not in self._names:
                pending.setdefault(key, None)
        return list(pending)

    def display(self, address: Optional[str], width: int = 0) -> str:
        if not address:
            return "-"
        name = self.get(address)
        if name:
            return name
        if width and len(address) > width:
            keep = max((width - 3) // 2, 4)
            return f"{address[: keep + 2]}…{address[-keep:]}"
        return address

    def clear(self) -> None:
        self._names.clear()

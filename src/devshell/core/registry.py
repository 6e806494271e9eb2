from typing import Dict, Generic, Iterator, List, Optional, Protocol, TypeVar


class Named(Protocol):
    name: str


N = TypeVar("N", bound=Named)


class Registry(Generic[N]):
    """
    Name-keyed store for console commands. Lookups are exact and
    case-sensitive; iteration follows registration order.
    """
    def __init__(self):
        self._by_name: Dict[str, N] = {}

    def register(self, entry: N) -> None:
        """
        Add an entry. Raises ValueError for an empty or already registered name.
        """
        if not entry.name:
            raise ValueError("Item name cannot be empty.")
        if entry.name in self._by_name:
            raise ValueError(f"Item with name '{entry.name}' is already registered.")
        self._by_name[entry.name] = entry

    def register_all(self, entries: List[N]) -> None:
        for entry in entries:
            self.register(entry)

    def get(self, name: str) -> N:
        """
        Look up an entry by name. Raises KeyError if not found.
        """
        try:
            return self._by_name[name]
        except KeyError:
            raise KeyError(f"'{name}' not found in registry.") from None

    def find(self, name: str) -> Optional[N]:
        return self._by_name.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self._by_name)

    def __iter__(self) -> Iterator[N]:
        return iter(self._by_name.values())

"""Order-preserving filtered view over a sequence."""

from typing import Callable, Generic, Iterator, Sequence, TypeVar

from sshs.ssh_config import Host

T = TypeVar("T")


class Searchable(Generic[T]):
    """A list filtered by a query string.

    Matching is a filter, not a ranking: matched items keep their original
    relative order. ``len``, indexing and iteration see only the matches;
    ``all_items`` sees everything.
    """

    def __init__(
        self,
        items: Sequence[T],
        query: str,
        predicate: Callable[[T, str], bool],
    ):
        self._items = tuple(items)
        self._predicate = predicate
        self._query = ""
        self._matched: tuple[int, ...] = ()
        self.search(query)

    @property
    def query(self) -> str:
        return self._query

    @property
    def matched_indices(self) -> tuple[int, ...]:
        """Indices into the unfiltered items, in ascending order."""
        return self._matched

    def search(self, query: str) -> None:
        """Recompute the matches for ``query`` from scratch."""
        self._query = query
        if not query:
            self._matched = tuple(range(len(self._items)))
            return
        self._matched = tuple(
            i for i, item in enumerate(self._items) if self._predicate(item, query)
        )

    def all_items(self) -> Iterator[T]:
        """Iterate over every item, ignoring the current query."""
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._matched)

    def __getitem__(self, index: int) -> T:
        return self._items[self._matched[index]]

    def __iter__(self) -> Iterator[T]:
        return (self._items[i] for i in self._matched)

    def __repr__(self) -> str:
        return (
            f"Searchable(query={self._query!r}, "
            f"matched={len(self._matched)}/{len(self._items)})"
        )


def fuzzy_match(text: str, query: str) -> bool:
    """True if every character of ``query`` appears in ``text`` in order.

    Case-insensitive; whitespace in the query is ignored.
    """
    remaining = iter(text.lower())
    return all(char in remaining for char in query.lower() if not char.isspace())


def host_matches(host: Host, query: str) -> bool:
    """Search predicate for hosts: name, any alias, or destination."""
    if not query:
        return True
    candidates = (host.name, host.destination, *host.aliases)
    return any(fuzzy_match(candidate, query) for candidate in candidates)


def search_hosts(hosts: Sequence[Host], query: str = "") -> Searchable[Host]:
    """Wrap hosts in a Searchable using the host fuzzy predicate."""
    return Searchable(hosts, query, host_matches)

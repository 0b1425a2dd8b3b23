"""Multi-valued string mappings.

``FormValues`` is all the binder asks of a payload: ordered values per
key. ``MultiDict`` is the concrete immutable mapping behind ``Headers``
and ``QueryParams``; plain lookups return the first value.
"""

from collections.abc import Iterable, Iterator, Mapping
from typing import Protocol, runtime_checkable


@runtime_checkable
class FormValues(Protocol):
    """A payload the binder can read: every value for a key, in order."""

    def get_list(self, key: str) -> list[str]: ...
    def __len__(self) -> int: ...


class MultiDict(Mapping[str, str]):
    """Immutable ``key -> [values]`` mapping, built once from ordered pairs.

    Subclasses may fold keys (``_fold``) so lookups are case-insensitive.
    """

    __slots__ = ("_lists",)

    _lists: dict[str, list[str]]

    def __init__(self, pairs: Iterable[tuple[str, str]] = ()) -> None:
        lists: dict[str, list[str]] = {}
        for key, value in pairs:
            lists.setdefault(self._fold(key), []).append(value)
        self._lists = lists

    @staticmethod
    def _fold(key: str) -> str:
        return key

    def __getitem__(self, key: str) -> str:
        return self._lists[self._fold(key)][0]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._fold(key) in self._lists

    def __iter__(self) -> Iterator[str]:
        return iter(self._lists)

    def __len__(self) -> int:
        return len(self._lists)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._lists!r})"

    def get_list(self, key: str) -> list[str]:
        """All values for *key* in arrival order; empty when absent."""
        return list(self._lists.get(self._fold(key), ()))

    def lists(self) -> dict[str, list[str]]:
        """A mutable copy of every key with its full value list."""
        return {key: list(values) for key, values in self._lists.items()}

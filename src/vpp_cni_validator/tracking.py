"""Expected-versus-observed bookkeeping shared by the cross-reference checks."""

from __future__ import annotations

from typing import Dict, Generic, Hashable, Iterable, Iterator, List, TypeVar

T = TypeVar("T", bound=Hashable)


class ExpectedSet(Generic[T]):
    """Set of items still waiting to be observed.

    Checks seed the set with everything they expect to see (peer node names,
    L2 FIB entry keys, pod names), :meth:`discard` items as they account for
    them and finally report whatever :meth:`remaining` returns.  Iteration
    order is insertion order so reports stay deterministic.
    """

    def __init__(self, items: Iterable[T] = ()) -> None:
        self._items: Dict[T, None] = dict.fromkeys(items)

    def discard(self, item: T) -> bool:
        """Mark ``item`` as observed; return ``False`` if it was not expected."""

        if item in self._items:
            del self._items[item]
            return True
        return False

    def remaining(self) -> List[T]:
        return list(self._items)

    def __contains__(self, item: object) -> bool:
        return item in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items))

    def __repr__(self) -> str:
        return f"ExpectedSet({list(self._items)!r})"

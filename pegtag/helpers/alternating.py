# pegtag/helpers/alternating.py
from __future__ import annotations
from typing import Generic, Iterable, Iterator, List, TypeVar

T = TypeVar("T")


class AlternatingList(Generic[T]):
    """Round-robin over several iterables.

    Each pass yields one value from every iterable that is not yet exhausted,
    in the order given to the constructor, until all of them are exhausted.
    Iterating again starts over with fresh iterators.
    """

    def __init__(self, alternators: Iterable[Iterable[T]]):
        self._alternators: List[Iterable[T]] = list(alternators)

    def __iter__(self) -> Iterator[T]:
        iterators = [iter(a) for a in self._alternators]
        done = [False] * len(iterators)
        while not all(done):
            for i, it in enumerate(iterators):
                if done[i]:
                    continue
                try:
                    value = next(it)
                except StopIteration:
                    done[i] = True
                    continue
                yield value

"""
Lazy, memoized relations between records.

A relation is declared as an async method decorated with ``@relation``:

    class Job(BaseModel):
        @relation
        async def pipeline(self):
            return await self.peer_factory("pipeline").get(self.pipeline_id)

``job.pipeline`` returns the same Relation object on every access, and the
loader runs at most once per record. Awaiting the relation (or its
``resolve()`` task) yields the loaded value.
"""

import asyncio
import functools
from typing import Any, Awaitable, Callable, Generator, Generic, TypeVar

T = TypeVar("T")


class Relation(Generic[T]):
    """A loader that runs once and shares its result with every awaiter."""

    def __init__(self, loader: Callable[[], Awaitable[T]]):
        self._loader = loader
        self._task: asyncio.Future[T] | None = None

    def resolve(self) -> "asyncio.Future[T]":
        """
        Start the loader on first call and return its task.

        Concurrent and later callers get the same task, so the underlying
        lookup happens once.
        """
        if self._task is None:
            self._task = asyncio.ensure_future(self._loader())
        return self._task

    @property
    def started(self) -> bool:
        return self._task is not None

    def __await__(self) -> Generator[Any, None, T]:
        return self.resolve().__await__()


class relation:
    """Descriptor that memoizes an async loader as a Relation per instance."""

    def __init__(self, loader: Callable[[Any], Awaitable[Any]]):
        self._loader = loader
        self._name = loader.__name__
        functools.update_wrapper(self, loader)

    def __set_name__(self, owner: type, name: str) -> None:
        self._name = name

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self

        cached = instance.__dict__.get(self._name)
        if cached is None:
            cached = Relation(functools.partial(self._loader, instance))
            # Stored in the instance dict so later lookups skip the descriptor
            instance.__dict__[self._name] = cached

        return cached

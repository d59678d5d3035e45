"""Result values returned across the service boundary instead of exceptions."""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from rider_dispatch.domain.errors import DispatchError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[DispatchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def code(self) -> Optional[str]:
        return self.error.code if self.error else None

    def unwrap(self) -> T:
        """Return the value or re-raise the error."""
        if self.error is not None:
            raise self.error
        return self.value


def as_result(
    fn: Callable[..., Awaitable[T]],
) -> Callable[..., Awaitable[Result[T]]]:
    """Wrap an async operation so ``DispatchError`` comes back as a ``Result``."""

    @functools.wraps(fn)
    async def wrapper(*args, **kwargs) -> Result[T]:
        try:
            return Result(value=await fn(*args, **kwargs))
        except DispatchError as exc:
            logger.warning("%s rejected [%s]: %s", fn.__name__, exc.code, exc)
            return Result(error=exc)

    return wrapper

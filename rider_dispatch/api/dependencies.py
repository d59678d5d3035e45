"""FastAPI dependency injection helpers."""

from fastapi import Request

from rider_dispatch.config import settings
from rider_dispatch.infrastructure.locks import (
    KeyedLock,
    LocalKeyedLock,
    RedisKeyedLock,
)
from rider_dispatch.infrastructure.store import (
    InMemoryStoreProvider,
    SqlStoreProvider,
    StoreProvider,
)
from rider_dispatch.services.dispatch import DispatchService


async def build_dispatch_service() -> DispatchService:
    """Wire the storage and lock backends chosen in settings."""
    stores: StoreProvider
    if settings.storage_backend == "memory":
        stores = InMemoryStoreProvider()
    else:
        from rider_dispatch.infrastructure.database import async_session_factory

        stores = SqlStoreProvider(async_session_factory)

    locks: KeyedLock
    if settings.lock_backend == "redis":
        from rider_dispatch.infrastructure.redis_client import get_redis

        locks = RedisKeyedLock(
            await get_redis(),
            ttl_seconds=settings.lock_ttl_seconds,
            wait_seconds=settings.lock_wait_seconds,
        )
    else:
        locks = LocalKeyedLock(wait_seconds=settings.lock_wait_seconds)

    return DispatchService(
        stores,
        locks,
        policy=settings.offer_policy,
        offer_ttl_seconds=settings.offer_ttl_seconds,
    )


async def release_backends() -> None:
    """Close whatever connections ``build_dispatch_service`` opened."""
    if settings.storage_backend == "sql":
        from rider_dispatch.infrastructure.database import dispose_engine

        await dispose_engine()
    if settings.lock_backend == "redis":
        from rider_dispatch.infrastructure.redis_client import close_redis

        await close_redis()


def get_dispatch(request: Request) -> DispatchService:
    """The service built at startup by the app lifespan."""
    return request.app.state.dispatch

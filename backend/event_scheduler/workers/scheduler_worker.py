from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from event_scheduler.core.config import get_settings
from event_scheduler.core.logging import configure_logging
from event_scheduler.db.session import create_engine, create_session_factory
from event_scheduler.integrations.realtime import RedisPushGateway
from event_scheduler.integrations.redis import RedisEventLease, create_redis
from event_scheduler.repositories.sql_store import SqlEventStore
from event_scheduler.repositories.store import EventStore, InMemoryEventStore
from event_scheduler.services.scheduler import build_scheduler_service

logger = logging.getLogger(__name__)


async def worker_main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level, service=settings.project_name)

    redis = create_redis(settings.redis_url)
    engine = None
    store: EventStore
    if settings.scheduler_store_backend == "sql":
        engine = create_engine(settings.database_url)
        store = SqlEventStore(create_session_factory(engine))
    else:
        logger.warning("Using in-memory event store; events are lost on restart")
        store = InMemoryEventStore()

    lease = RedisEventLease(redis, settings.scheduler_event_lease_ttl_sec) if settings.scheduler_event_lease_enabled else None
    scheduler = build_scheduler_service(
        settings,
        store=store,
        push_gateway=RedisPushGateway(redis, settings.realtime_channel_prefix),
        lease=lease,
    )

    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_requested.set)

    await scheduler.start()
    logger.info("Scheduler worker started", extra={"store": settings.scheduler_store_backend, "lease": lease is not None})
    try:
        await stop_requested.wait()
    finally:
        logger.info("Shutting down scheduler worker")
        await scheduler.aclose()
        await redis.aclose()
        if engine is not None:
            await engine.dispose()


def main() -> None:
    asyncio.run(worker_main())


if __name__ == "__main__":
    main()

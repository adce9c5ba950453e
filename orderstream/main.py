"""
Order Stream Cache Application

Wires the store, cache, stream consumer and read API together and owns their
startup order and cooperative shutdown.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI

from orderstream.config import Settings, get_settings
from orderstream.config.logging import configure_logging
from orderstream.database import (
    OrderStore,
    close_database,
    create_engine,
    create_session_factory,
    init_database,
)
from orderstream.errors import PersistenceError
from orderstream.ingestion import OrderPublisher, OrderStreamConsumer
from orderstream.serving import OrderCache, OrderQueryService, recover_cache
from orderstream.serving.api import create_api_app

logger = structlog.get_logger(__name__)


class OrderStreamService:
    """
    Component container.

    Startup: database, cache index (cold start or recovery), consumer.
    Shutdown: consumer (after its in-flight message), then the pool.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine = create_engine(settings.database)
        self.store = OrderStore(create_session_factory(self.engine))
        self.cache = OrderCache(settings.cache.capacity)
        self.query = OrderQueryService(self.cache, self.store)
        self.consumer = OrderStreamConsumer(
            settings.stream,
            self.store,
            self.cache,
            settings.cache.app_key,
        )
        self._consumer_task: Optional[asyncio.Task] = None

    async def prepare_cache(self) -> None:
        """Clear the persisted index on cold start, otherwise recover from it"""
        app_key = self.settings.cache.app_key
        if self.settings.cache.cold_start:
            await self.store.clear_cache_index(app_key)
            return
        try:
            await recover_cache(
                self.store,
                self.cache,
                app_key,
                prune_unrecoverable=self.settings.cache.prune_unrecoverable,
            )
        except PersistenceError as e:
            logger.error("Cache recovery failed, starting with an empty cache", error=str(e))

    async def start(self) -> None:
        await init_database(self.engine, create_schema=self.settings.database.create_schema)
        await self.prepare_cache()

        await self.consumer.start()
        self._consumer_task = asyncio.create_task(self.consumer.run(), name="order-stream-consumer")
        self._consumer_task.add_done_callback(_log_consumer_exit)

        if self.settings.publish_sample_on_startup:
            await self.publish_sample()

    async def publish_sample(self) -> None:
        publisher = OrderPublisher(self.settings.stream)
        await publisher.start()
        try:
            await publisher.publish_sample()
        finally:
            await publisher.stop()

    async def stop(self) -> None:
        await self.consumer.stop()
        if self._consumer_task is not None:
            await asyncio.gather(self._consumer_task, return_exceptions=True)
            self._consumer_task = None
        await close_database(self.engine)


def _log_consumer_exit(task: asyncio.Task) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.error("Order stream consumer crashed", error=str(task.exception()))


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI application with the service lifespan"""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.monitoring)
        logger.info("Starting Order Stream Cache", environment=settings.app_env)

        service = OrderStreamService(settings)
        app.state.engine = service.engine
        app.state.consumer = service.consumer
        app.state.query_service = service.query
        await service.start()

        yield

        logger.info("Shutting down...")
        await service.stop()

    return create_api_app(settings, lifespan=lifespan)


app = create_app()


def main() -> None:
    """Console entry point"""
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()

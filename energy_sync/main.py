"""
FastAPI Application - energy sync service
HTTP health surface and sync fabric share one event loop
"""

# Load environment variables from .env file FIRST before any other imports
from dotenv import load_dotenv
load_dotenv()

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException

from energy_sync.api import health
from energy_sync.core.config import config
from energy_sync.core.errors import ErrorResponse, error_response_handler, http_exception_handler
from energy_sync.core.logger import logger
from energy_sync.db.mongodb import close_mongo_connection, connect_to_mongo
from energy_sync.messaging import MessageBrokerFactory
from energy_sync.services import create_sync_service


def _on_sync_task_done(task: asyncio.Task) -> None:
    """Report a sync service that exits on its own"""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error(
            "Sync service stopped unexpectedly",
            error=error,
            metadata={"event": "sync_service_failed", "role": config.service_role.value},
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info(f"Starting {config.service_name} ({config.service_role.value})...")
    database = await connect_to_mongo()
    broker = MessageBrokerFactory.create(config)
    sync_service = create_sync_service(config, broker, database)

    app.state.database = database
    app.state.broker = broker
    app.state.sync_service = sync_service
    sync_task = asyncio.create_task(sync_service.run())
    sync_task.add_done_callback(_on_sync_task_done)

    logger.info(
        f"{config.service_name} started successfully",
        metadata={
            "service_name": config.service_name,
            "role": config.service_role.value,
            "version": config.service_version,
            "environment": config.environment,
            "port": config.port,
        },
    )

    yield

    # Shutdown
    logger.info(f"Shutting down {config.service_name}...")
    try:
        await sync_service.stop()
        sync_task.cancel()
        try:
            await sync_task
        except asyncio.CancelledError:
            pass
        except Exception:
            # Already reported by _on_sync_task_done
            pass
    finally:
        await close_mongo_connection()


app = FastAPI(
    title="Energy Sync Service",
    description="Event synchronization fabric of the energy monitoring platform",
    version=config.service_version,
    lifespan=lifespan,
)

app.add_exception_handler(ErrorResponse, error_response_handler)
app.add_exception_handler(HTTPException, http_exception_handler)

app.include_router(health.router, tags=["health"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("energy_sync.main:app", host=config.host, port=config.port)

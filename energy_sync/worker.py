"""
Headless sync worker
Runs the same broker wiring as the HTTP app, without the HTTP surface
"""

import asyncio
import signal
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

from energy_sync.core.config import config
from energy_sync.core.logger import logger
from energy_sync.db.mongodb import close_mongo_connection, connect_to_mongo
from energy_sync.messaging import MessageBrokerFactory
from energy_sync.services import SyncService, create_sync_service


class SyncWorker:
    """Worker process for consuming and projecting sync events"""

    def __init__(self):
        self.sync_service: Optional[SyncService] = None

    async def start(self):
        logger.info(f"Sync worker starting for role '{config.service_role.value}'...")
        database = await connect_to_mongo()
        broker = MessageBrokerFactory.create(config)
        self.sync_service = create_sync_service(config, broker, database)
        await self.sync_service.run()

    async def stop(self):
        """Gracefully stop the worker"""
        logger.info("Stopping sync worker...")
        if self.sync_service:
            await self.sync_service.stop()
        await close_mongo_connection()
        logger.info("Sync worker stopped")


async def main():
    """Main entry point for the worker"""
    worker = SyncWorker()
    loop = asyncio.get_running_loop()
    run_task = asyncio.create_task(worker.start())

    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, run_task.cancel)

    try:
        await run_task
    except asyncio.CancelledError:
        logger.info("Shutdown signal received")
    finally:
        await worker.stop()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()

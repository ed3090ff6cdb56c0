"""
swipefeed主入口
启动listing聚合API服务和数据保留调度器
"""

import asyncio
import sys

import uvicorn
from loguru import logger

from swipefeed.api import create_app
from swipefeed.datastore.engine import close_db, init_db
from swipefeed.datastore.repositories import ListingStore
from swipefeed.datastore.scheduler import retention_scheduler
from swipefeed.services.aggregator import build_aggregator
from swipefeed.services.client import close_upstream_client, get_upstream_client
from swipefeed.settings import global_settings


async def main() -> None:
    """主函数"""
    logger.remove()
    logger.add(sys.stderr, level=global_settings.log_level.upper())
    logger.info("Starting swipefeed...")

    aggregator = None
    try:
        # 初始化数据库
        logger.info("Initializing database...")
        session_factory = await init_db()
        logger.info("Database initialized successfully")

        store = ListingStore(session_factory)
        aggregator = build_aggregator(store=store, client=get_upstream_client())

        # 启动数据保留调度器
        logger.info("Starting retention scheduler...")
        retention_scheduler.store = store
        retention_scheduler.start()

        app = create_app(aggregator, expose_provenance=global_settings.expose_provenance)
        config = uvicorn.Config(
            app,
            host=global_settings.host,
            port=global_settings.port,
            log_level=global_settings.log_level.lower(),
        )
        logger.info(f"swipefeed listening on {global_settings.host}:{global_settings.port}")
        await uvicorn.Server(config).serve()

    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
    except Exception as e:
        logger.error(f"Error in main loop: {e}")
    finally:
        # 清理资源
        if retention_scheduler.is_running():
            logger.info("Stopping retention scheduler...")
            retention_scheduler.stop()

        if aggregator is not None:
            logger.info("Draining background writes...")
            await aggregator.close()

        await close_upstream_client()

        logger.info("Closing database connections...")
        await close_db()

        logger.info("swipefeed stopped")


if __name__ == "__main__":
    asyncio.run(main())

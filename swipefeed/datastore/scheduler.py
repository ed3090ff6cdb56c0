"""
数据保留定时任务调度器
使用APScheduler定期清理过期的listing
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from swipefeed.datastore.engine import get_session_factory
from swipefeed.datastore.repositories import ListingStore
from swipefeed.settings import global_settings
from swipefeed.utils import safe_func_wrapper


class RetentionScheduler:
    """过期数据清理调度器"""

    def __init__(
        self,
        store: ListingStore | None = None,
        retention_days: int | None = None,
        interval_hours: int | None = None,
    ):
        self.scheduler = AsyncIOScheduler()
        self.store = store
        self.retention_days = retention_days or global_settings.retention_days
        self.interval_hours = interval_hours or global_settings.retention_interval_hours
        self._is_running = False

    def _ensure_store(self) -> ListingStore:
        """确保store已初始化"""
        if self.store is None:
            self.store = ListingStore(get_session_factory())
        return self.store

    @safe_func_wrapper
    async def purge_job(self) -> None:
        """清理任务"""
        logger.info("Starting scheduled retention purge...")
        try:
            deleted = await self._ensure_store().purge_expired(self.retention_days)
            logger.info(f"Scheduled retention purge completed: {deleted} listings removed")
        except Exception as e:
            logger.error(f"Error in scheduled retention purge: {e}")

    def start(self) -> None:
        """启动调度器"""
        if self._is_running:
            logger.warning("Retention scheduler is already running")
            return

        self.scheduler.add_job(
            self.purge_job,
            trigger="interval",
            hours=self.interval_hours,
            id="retention_purge_job",
            name="Listing Retention Purge",
            replace_existing=True,
        )

        self.scheduler.start()
        self._is_running = True

        logger.info(
            f"Retention scheduler started: purging every {self.interval_hours} hours "
            f"(keeping {self.retention_days} days)"
        )

    def stop(self) -> None:
        """停止调度器"""
        if not self._is_running:
            logger.warning("Retention scheduler is not running")
            return

        self.scheduler.shutdown(wait=False)
        self._is_running = False
        logger.info("Retention scheduler stopped")

    def is_running(self) -> bool:
        """检查调度器是否运行中"""
        return self._is_running

    async def purge_now(self) -> int:
        """立即执行一次清理（手动触发）"""
        logger.info("Manual retention purge triggered")
        deleted = await self._ensure_store().purge_expired(self.retention_days)
        logger.info(f"Manual retention purge completed: {deleted} listings removed")
        return deleted


# 全局调度器实例
retention_scheduler = RetentionScheduler()

"""QueueMonitor -- 查询时聚合的统计、健康快照与用量汇总

所有聚合只读，每个聚合只执行一次查询：同一次调用内每个任务恰好落入一个状态桶。
缺失的 usage 按 0 计，不抛异常。
"""

from collections import Counter
from datetime import UTC, datetime, timedelta

import structlog

from .config import DAILY_WINDOW_S, HOURLY_WINDOW_S, MonitorConfig
from .models.enums import HealthStatus, StatsWindow, TaskStatus
from .models.stats import (
    DashboardSnapshot,
    DashboardStats,
    HealthMetrics,
    QueueHealth,
    QueueStatusCounts,
    UserUsage,
    WindowStats,
)
from .store.protocols import TaskStore

log = structlog.get_logger()

WINDOW_SECONDS: dict[StatsWindow, int] = {
    StatsWindow.HOURLY: HOURLY_WINDOW_S,
    StatsWindow.DAILY: DAILY_WINDOW_S,
}

WARNING_HIGH_FAILURE_RATE = "High failure rate detected"
WARNING_LARGE_BACKLOG = "Large queue backlog"
WARNING_DELAYED_TASKS = "Delayed tasks detected"
WARNING_SLOW_PROCESSING = "Slow processing times"


def _month_bounds(as_of: datetime) -> tuple[datetime, datetime]:
    """as_of 所在自然月的 [起始, 下月起始)"""
    start = as_of.astimezone(UTC).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


class QueueMonitor:
    """队列统计与健康监控"""

    def __init__(self, task_store: TaskStore, config: MonitorConfig | None = None) -> None:
        self._tasks = task_store
        self._config = config or MonitorConfig()

    async def compute_stats(
        self, window: StatsWindow, as_of: datetime | None = None
    ) -> WindowStats:
        """统计 finished_at 落在 (as_of - window, as_of] 内的终态任务"""
        as_of = as_of or datetime.now(UTC)
        start = as_of - timedelta(seconds=WINDOW_SECONDS[window])
        tasks = await self._tasks.list_finished_between(start, as_of)

        successful = [t for t in tasks if t.status == TaskStatus.COMPLETED]
        failed = sum(1 for t in tasks if t.status == TaskStatus.FAILED)
        tokens = sum(t.usage.tokens_used for t in successful if t.usage)
        cost = sum(t.usage.cost for t in successful if t.usage)

        return WindowStats(
            total=len(tasks),
            successful=len(successful),
            failed=failed,
            by_agent_type=dict(Counter(t.agent_type.value for t in tasks)),
            by_user=dict(Counter(t.user_id for t in tasks)),
            average_tokens=round(tokens / len(successful)) if successful else 0,
            total_cost=round(cost, 2),
        )

    async def compute_health(self, as_of: datetime | None = None) -> QueueHealth:
        """计算健康快照

        unhealthy: 失败率 >= failure_rate_unhealthy 或排队数 > backlog_unhealthy
        degraded: 任一告警触发
        """
        as_of = as_of or datetime.now(UTC)
        cfg = self._config
        tasks = await self._tasks.list_tasks()

        counts: Counter[TaskStatus] = Counter(t.status for t in tasks)
        processed = counts[TaskStatus.COMPLETED]
        failed = counts[TaskStatus.FAILED]
        waiting = counts[TaskStatus.QUEUED]

        delayed = 0
        if cfg.delayed_after_s is not None:
            cutoff = as_of - timedelta(seconds=cfg.delayed_after_s)
            delayed = sum(
                1 for t in tasks if t.status == TaskStatus.QUEUED and t.created_at <= cutoff
            )

        window_start = as_of - timedelta(seconds=cfg.processing_time_window_s)
        recent = [
            t
            for t in tasks
            if t.status == TaskStatus.COMPLETED
            and t.finished_at is not None
            and window_start < t.finished_at <= as_of
        ]
        avg_processing = (
            sum(t.usage.processing_time if t.usage else 0 for t in recent) / len(recent)
            if recent
            else 0.0
        )

        finished = processed + failed
        failure_rate = failed / finished if finished else 0.0
        high_failure = finished > 0 and failure_rate >= cfg.failure_rate_unhealthy
        huge_backlog = waiting > cfg.backlog_unhealthy

        warnings: list[str] = []
        if failure_rate > cfg.failure_rate_degraded or high_failure:
            warnings.append(WARNING_HIGH_FAILURE_RATE)
        if waiting > cfg.backlog_degraded or huge_backlog:
            warnings.append(WARNING_LARGE_BACKLOG)
        if delayed > cfg.delayed_degraded:
            warnings.append(WARNING_DELAYED_TASKS)
        if avg_processing > cfg.slow_processing_ms:
            warnings.append(WARNING_SLOW_PROCESSING)

        if high_failure or huge_backlog:
            status = HealthStatus.UNHEALTHY
        elif warnings:
            status = HealthStatus.DEGRADED
        else:
            status = HealthStatus.HEALTHY

        if status != HealthStatus.HEALTHY:
            await log.awarning(
                "queue_health_degraded",
                status=status,
                warnings=warnings,
                failure_rate=round(failure_rate, 4),
                waiting=waiting,
            )

        return QueueHealth(
            status=status,
            metrics=HealthMetrics(
                processed=processed,
                failed=failed,
                active=counts[TaskStatus.PROCESSING],
                waiting=waiting,
                delayed=delayed,
                average_processing_time=avg_processing,
            ),
            warnings=warnings,
            timestamp=as_of,
        )

    async def dashboard(self, as_of: datetime | None = None) -> DashboardSnapshot:
        """Dashboard 快照：health + hourly/daily stats，共用同一个 as_of"""
        as_of = as_of or datetime.now(UTC)
        health = await self.compute_health(as_of)
        hourly = await self.compute_stats(StatsWindow.HOURLY, as_of)
        daily = await self.compute_stats(StatsWindow.DAILY, as_of)
        return DashboardSnapshot(
            health=health,
            stats=DashboardStats(hourly=hourly, daily=daily),
            timestamp=as_of,
        )

    async def queue_status(self) -> QueueStatusCounts:
        """各状态任务数"""
        counts = await self._tasks.count_by_status()
        return QueueStatusCounts(
            waiting=counts.get(TaskStatus.QUEUED, 0),
            active=counts.get(TaskStatus.PROCESSING, 0),
            completed=counts.get(TaskStatus.COMPLETED, 0),
            failed=counts.get(TaskStatus.FAILED, 0),
        )

    async def user_usage(self, user_id: str, as_of: datetime | None = None) -> UserUsage:
        """用户自然月（UTC）用量：本月创建的任务数，及其中已完成任务的 token 与成本"""
        as_of = as_of or datetime.now(UTC)
        start, reset_date = _month_bounds(as_of)
        tasks = await self._tasks.list_created_between(user_id, start, reset_date)

        completed = [t for t in tasks if t.status == TaskStatus.COMPLETED and t.usage]
        return UserUsage(
            user_id=user_id,
            tasks_this_month=len(tasks),
            tokens_used=sum(t.usage.tokens_used for t in completed),
            total_cost=round(sum(t.usage.cost for t in completed), 2),
            reset_date=reset_date,
        )

"""APScheduler wrapper exposing higher level helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ..config import RecordKind, ScheduleConfig, ScheduleType


class APSchedulerAdapter:
    """Manage one APScheduler job per record kind."""

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self.scheduler = BackgroundScheduler()
        self.logger = (logger or structlog.get_logger("expa_notifier")).bind(component="scheduler")
        self.started = False

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("apscheduler_started")

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def schedule_kind(
        self,
        kind: RecordKind,
        schedule: ScheduleConfig,
        callback: Callable[[RecordKind], object],
    ) -> None:
        trigger = self._build_trigger(schedule)
        job_id = f"poll::{kind.value}"
        # A tick that fires while the previous cycle still runs is dropped, never overlapped.
        self.scheduler.add_job(
            callback,
            trigger=trigger,
            id=job_id,
            args=[kind],
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.logger.info("job_scheduled", kind=kind.value, schedule=schedule.model_dump(mode="json"))

    def _build_trigger(self, schedule: ScheduleConfig):
        if schedule.type is ScheduleType.CRON:
            return CronTrigger.from_crontab(str(schedule.value))
        if schedule.type is ScheduleType.INTERVAL:
            if isinstance(schedule.value, (int, float)):
                return IntervalTrigger(seconds=float(schedule.value))
            if isinstance(schedule.value, dict):
                return IntervalTrigger(**schedule.value)
            raise ValueError("Interval schedule requires seconds or kwargs dict")
        if schedule.type is ScheduleType.ONCE:
            if schedule.value:
                run_date = datetime.fromisoformat(str(schedule.value))
            else:
                run_date = datetime.now(timezone.utc)
            return DateTrigger(run_date=run_date)
        raise ValueError(f"Unknown schedule type: {schedule.type}")

    def list_jobs(self) -> list[dict]:
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append(
                {
                    "id": job.id,
                    "next_run_time": getattr(job, "next_run_time", None),
                    "trigger": str(job.trigger),
                }
            )
        return jobs


__all__ = ["APSchedulerAdapter"]
